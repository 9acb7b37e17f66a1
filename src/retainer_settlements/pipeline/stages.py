"""
Stage registry for the settlement pipeline.

Only the stages from "Retainer Signed" onwards matter for settlement. The
label is the literal text stored in daily_deal_flow.status; display_order
continues the numbering of the wider intake pipeline (hence 7-10).
"""

from dataclasses import dataclass
from enum import Enum

from ..errors import UnknownStageError


@dataclass(frozen=True)
class PipelineStage:
    key: str
    label: str
    display_order: int


class Stage(Enum):
    """The four settlement stages, in pipeline order."""

    RETAINER_SIGNED = PipelineStage('retainer_signed', 'Retainer Signed', 7)
    ATTORNEY_REVIEW = PipelineStage('attorney_review', 'Attorney Review', 8)
    APPROVED_PAYABLE = PipelineStage('approved_payable', 'Approved – Payable', 9)
    PAID_TO_BPO = PipelineStage('paid_to_bpo', 'Paid to BPO', 10)

    @property
    def key(self) -> str:
        return self.value.key

    @property
    def label(self) -> str:
        return self.value.label

    @property
    def display_order(self) -> int:
        return self.value.display_order


PAID_TO_BPO_LABEL = Stage.PAID_TO_BPO.label

_BY_LABEL: dict[str, Stage] = {s.label: s for s in Stage}
_BY_KEY: dict[str, Stage] = {s.key: s for s in Stage}


def stages() -> list[PipelineStage]:
    """All settlement stages ordered by display_order."""
    return sorted((s.value for s in Stage), key=lambda s: s.display_order)


def stage_labels() -> list[str]:
    """Status labels used to select the settlement working set."""
    return [s.label for s in stages()]


def label_of(stage: Stage | str) -> str:
    """Label for a Stage member or stage key."""
    if isinstance(stage, Stage):
        return stage.label
    try:
        return _BY_KEY[stage].label
    except KeyError:
        raise UnknownStageError(f"Unknown stage key: {stage}", context={'key': stage}) from None


def order_of(label: str) -> int:
    """Display order for a stage label."""
    return stage_for(label).display_order


def stage_for(label: str) -> Stage:
    try:
        return _BY_LABEL[label]
    except KeyError:
        raise UnknownStageError(f"Unknown stage label: {label!r}", context={'label': label}) from None


def is_registered(label: str) -> bool:
    return label in _BY_LABEL


def is_terminal(label: str) -> bool:
    """Paid to BPO is terminal: nothing moves a deal out of it."""
    return label == PAID_TO_BPO_LABEL
