"""Turn model — one request/response exchange."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class Turn:
    """One exchange with a model.

    ``formatted_prompt`` stays empty until the turn is submitted; after
    that it holds the prefix/suffix-wrapped text sent to the generator.
    """

    raw_input: str = ""
    formatted_prompt: str = ""
    response: str = ""
    # Set when draining the generator failed part-way through.
    failed: bool = False

    def has_response(self) -> bool:
        return bool(self.response)

    def as_pair(self) -> tuple[str, str]:
        return self.raw_input, self.response

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "raw_input": self.raw_input,
            "formatted_prompt": self.formatted_prompt,
            "response": self.response,
        }
        if self.failed:
            data["failed"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Turn:
        return cls(
            raw_input=str(data.get("raw_input", "") or ""),
            formatted_prompt=str(data.get("formatted_prompt", "") or ""),
            response=str(data.get("response", "") or ""),
            failed=bool(data.get("failed", False)),
        )
