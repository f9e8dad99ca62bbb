"""
Domain layer for diagram conversion.
Provides the converter gateway, the layout options model and a service that
validates input before delegating to the gateway, so front-ends (HTTP or
others) share the same core logic.
"""

from .interfaces import ConversionOptions, ConverterGateway, InvalidOptionError, LayoutDirection
from .service import ConversionService, EmptyInputError, InputTooLargeError
