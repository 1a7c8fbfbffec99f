from enum import Enum

from decision_guardian.models import DecisionStatus, Severity


class UIStyle(str, Enum):
    BLUE = "blue"
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    CYAN = "cyan"
    DIM = "dim"
    WHITE = "white"


SEVERITY_STYLE = {
    Severity.CRITICAL: UIStyle.RED.value,
    Severity.WARNING: UIStyle.YELLOW.value,
    Severity.INFO: UIStyle.CYAN.value,
}

STATUS_STYLE = {
    DecisionStatus.ACTIVE: UIStyle.GREEN.value,
    DecisionStatus.DEPRECATED: UIStyle.YELLOW.value,
    DecisionStatus.SUPERSEDED: UIStyle.DIM.value,
    DecisionStatus.ARCHIVED: UIStyle.DIM.value,
}
