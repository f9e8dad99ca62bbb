import asyncio
from typing import AsyncIterator

from .interfaces import ConversionOptions, ConverterGateway


class InputTooLargeError(ValueError):
    def __init__(self, max_size: int) -> None:
        super().__init__(f"Input too large. Maximum size: {max_size} bytes")
        self.max_size = max_size


class EmptyInputError(ValueError):
    def __init__(self) -> None:
        super().__init__("Empty input. Provide PlantUML content in request body.")


class ConversionService:
    """Core domain service for a single conversion request.

    Framework-agnostic: the HTTP controller hands it the body stream and the
    parsed options, and it delegates the conversion itself to a gateway.
    Holds no per-request state, so one instance serves every request.
    """

    def __init__(self, converter: ConverterGateway, *, max_input_size: int) -> None:
        self._converter = converter
        self._max_input_size = max_input_size

    @property
    def max_input_size(self) -> int:
        return self._max_input_size

    def check_declared_size(self, content_length: int) -> None:
        if content_length > self._max_input_size:
            raise InputTooLargeError(self._max_input_size)

    async def read_source(self, chunks: AsyncIterator[bytes]) -> str:
        """Read the body stream, enforcing the size limit on actual bytes."""
        buf = bytearray()
        async for chunk in chunks:
            if not chunk:
                continue
            buf.extend(chunk)
            if len(buf) > self._max_input_size:
                raise InputTooLargeError(self._max_input_size)
        return buf.decode("utf-8", errors="replace")

    @staticmethod
    def check_source(source: str) -> None:
        if not source.strip():
            raise EmptyInputError()

    async def convert(self, source: str, options: ConversionOptions) -> str:
        return await asyncio.to_thread(self._converter.convert, source, options)
