import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Protocol


class InvalidOptionError(ValueError):
    """A layout option was supplied with a value that cannot be used."""


class LayoutDirection(str, Enum):
    TB = "TB"
    BT = "BT"
    LR = "LR"
    RL = "RL"

    @property
    def horizontal(self) -> bool:
        return self in (LayoutDirection.LR, LayoutDirection.RL)

    @property
    def reversed(self) -> bool:
        return self in (LayoutDirection.BT, LayoutDirection.RL)


_DIGITS_RE = re.compile(r"\s*[0-9]+\s*")


def _int_param(params: Mapping[str, str], name: str, default: int) -> int:
    """Plain ASCII digits only; signs, underscores, decimals and suffixes mean the default."""
    raw = params.get(name)
    if raw is None or not _DIGITS_RE.fullmatch(raw):
        return default
    return int(raw)


@dataclass(frozen=True)
class ConversionOptions:
    layout_direction: LayoutDirection = LayoutDirection.TB
    nodesep: int = 60
    ranksep: int = 80
    marginx: int = 20
    marginy: int = 20

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "ConversionOptions":
        """Build options from query parameters.

        Numeric values must be plain non-negative integers such as `60`;
        anything else (`-5`, `+5`, `1_000`, `60.5`, `12abc`) falls back to the
        default. An unknown direction raises InvalidOptionError.
        """
        raw_direction = params.get("direction")
        direction = LayoutDirection.TB
        if raw_direction is not None and raw_direction.strip():
            try:
                direction = LayoutDirection(raw_direction.strip().upper())
            except ValueError:
                allowed = ", ".join(d.value for d in LayoutDirection)
                raise InvalidOptionError(
                    f"Invalid direction '{raw_direction}'. Use one of: {allowed}."
                ) from None
        return cls(
            layout_direction=direction,
            nodesep=_int_param(params, "nodesep", cls.nodesep),
            ranksep=_int_param(params, "ranksep", cls.ranksep),
            marginx=_int_param(params, "marginx", cls.marginx),
            marginy=_int_param(params, "marginy", cls.marginy),
        )

    def as_dict(self) -> dict[str, object]:
        return {
            "direction": self.layout_direction.value,
            "nodesep": self.nodesep,
            "ranksep": self.ranksep,
            "marginx": self.marginx,
            "marginy": self.marginy,
        }


class ConverterGateway(Protocol):
    def convert(self, source: str, options: ConversionOptions) -> str:
        """Convert diagram source text into draw.io XML synchronously.
        This is a blocking call; callers should offload to threads if needed.
        Failures raise an exception whose message is safe to show to clients.
        """
