from ..c4 import layout, parse, render
from .interfaces import ConversionOptions, ConverterGateway


class C4DrawioConverter(ConverterGateway):
    """Converts C4-PlantUML into an uncompressed draw.io document."""

    def convert(self, source: str, options: ConversionOptions) -> str:
        diagram = parse(source)
        placement = layout(
            diagram,
            direction=options.layout_direction,
            nodesep=options.nodesep,
            ranksep=options.ranksep,
            marginx=options.marginx,
            marginy=options.marginy,
        )
        return render(diagram, placement)
