"""Auto-approval rules and the deterministic eligibility predicate.

A submission is eligible for automated approval when all of its governance
checks pass, its risk score is within policy, and at least one enabled rule
with an ``auto_approve`` action matches it. The same predicate sets the
advisory ``auto_approval_eligible`` flag and decides retries, so re-running
it against unchanged metadata always gives the same answer.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .types import Submission

logger = logging.getLogger(__name__)


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    CONTAINS = "contains"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class RuleActionType(str, Enum):
    AUTO_APPROVE = "auto_approve"
    ASSIGN_REVIEWER = "assign_reviewer"
    ADD_TAG = "add_tag"
    SET_PRIORITY = "set_priority"


@dataclass(frozen=True, slots=True)
class RuleCondition:
    field: str              # producer | category | classification | size | format | has_personal_data | ...
    operator: ConditionOperator
    value: str


@dataclass(frozen=True, slots=True)
class RuleAction:
    type: RuleActionType
    value: str = ""


@dataclass(frozen=True, slots=True)
class AutoApprovalRule:
    id: str
    name: str
    enabled: bool = True
    asset_type: str = "all"     # dataset | api | stream | model | access_request | all
    conditions: tuple[RuleCondition, ...] = ()
    actions: tuple[RuleAction, ...] = ()
    created_by: str = ""
    created_at: str | None = None

    @property
    def auto_approves(self) -> bool:
        return any(a.type == RuleActionType.AUTO_APPROVE for a in self.actions)

    def applies_to(self, submission: Submission) -> bool:
        return self.enabled and self.asset_type in ("all", submission.search_type)


@dataclass(frozen=True, slots=True)
class EligibilityResult:
    eligible: bool
    failed_checks: tuple[str, ...] = ()
    suggested_actions: tuple[str, ...] = ()
    matched_rule: AutoApprovalRule | None = None


@dataclass
class AutoApprovalPolicy:
    """Rules plus the global thresholds every auto-approval must meet."""
    rules: list[AutoApprovalRule] = field(default_factory=list)
    max_risk_score: int = 30

    def matching_rules(self, submission: Submission) -> list[AutoApprovalRule]:
        facts = submission_facts(submission)
        return [
            rule for rule in self.rules
            if rule.applies_to(submission) and all(condition_matches(c, facts) for c in rule.conditions)
        ]

    def evaluate(self, submission: Submission) -> EligibilityResult:
        """Deterministic eligibility decision for ``submission``."""
        failed: list[str] = []
        suggestions: list[str] = []

        for name in failed_governance_checks(submission):
            failed.append(f"governance check '{name}' not passed")
            suggestions.append(f"Resolve the '{name}' governance check and resubmit")

        if submission.risk_score > self.max_risk_score:
            failed.append(f"risk score {submission.risk_score} exceeds {self.max_risk_score}")
            suggestions.append("Reduce the risk score or route to manual review")

        matched = next((r for r in self.matching_rules(submission) if r.auto_approves), None)
        if matched is None:
            failed.append("no auto-approval rule matches")
            suggestions.append("Proceed with manual review")

        if failed:
            return EligibilityResult(
                eligible=False,
                failed_checks=tuple(failed),
                suggested_actions=tuple(suggestions),
            )
        return EligibilityResult(eligible=True, matched_rule=matched)

    def routing_actions(self, submission: Submission) -> list[RuleAction]:
        """Non-approval actions of every matching rule, in rule order."""
        return [
            action
            for rule in self.matching_rules(submission)
            for action in rule.actions
            if action.type != RuleActionType.AUTO_APPROVE
        ]


# =============================================================================
# Condition evaluation
# =============================================================================

_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "kb": 1024,
    "mb": 1024 ** 2,
    "gb": 1024 ** 3,
    "tb": 1024 ** 4,
}
_SIZE_PATTERN = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


def to_number(value: Any) -> float | None:
    """Parse numbers and sizes like ``"2.4 GB"`` (bytes). None if not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _SIZE_PATTERN.match(str(value))
    if not match:
        return None
    unit = _SIZE_UNITS.get(match.group(2).lower())
    if unit is None:
        return None
    return float(match.group(1)) * unit


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def condition_matches(condition: RuleCondition, facts: dict[str, Any]) -> bool:
    if condition.field not in facts:
        return False
    actual = facts[condition.field]
    op = condition.operator

    if op in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        left, right = to_number(actual), to_number(condition.value)
        if left is None or right is None:
            return False
        return left > right if op == ConditionOperator.GREATER_THAN else left < right

    actual_text = _as_text(actual).casefold()
    expected = condition.value.casefold()
    if op == ConditionOperator.EQUALS:
        return actual_text == expected
    if op == ConditionOperator.NOT_EQUALS:
        return actual_text != expected
    return expected in actual_text


def submission_facts(submission: Submission) -> dict[str, Any]:
    """Flat view of a submission that rule conditions are evaluated against."""
    facts: dict[str, Any] = {
        key: value
        for key, value in submission.metadata.items()
        if isinstance(value, (str, int, float, bool))
    }
    facts.update({
        "producer": submission.producer,
        "category": submission.category,
        "asset_type": submission.search_type,
        "priority": submission.priority.value,
        "risk_score": submission.risk_score,
    })
    return facts


def failed_governance_checks(submission: Submission) -> list[str]:
    """
    Names of governance checks that have not passed.

    ``metadata.governance_checks`` is either a mapping of check name to
    result, or a list of ``{"name": ..., "passed": ...}`` entries.
    """
    checks = submission.metadata.get("governance_checks") or {}
    if isinstance(checks, list):
        checks = {c.get("name", f"check-{i}"): c.get("passed") for i, c in enumerate(checks)}
    if not isinstance(checks, dict):
        return []
    return [name for name, result in checks.items() if not _check_passed(result)]


def _check_passed(result: Any) -> bool:
    if isinstance(result, bool):
        return result
    return str(result).lower() in ("passed", "pass", "ok", "true")


# =============================================================================
# YAML persistence
# =============================================================================

def load_rules_from_yaml(path: str | Path) -> list[AutoApprovalRule]:
    """Load auto-approval rules. A missing file means no rules."""
    path = Path(path)
    if not path.exists():
        logger.info(f"Rules file not found: {path}")
        return []

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data or "rules" not in data:
        return []

    rules = [parse_rule(r) for r in data["rules"]]
    logger.info(f"Loaded {len(rules)} auto-approval rules from {path}")
    return rules


def save_rules_to_yaml(path: str | Path, rules: list[AutoApprovalRule]) -> int:
    path = Path(path)
    data = {"rules": [serialize_rule(r) for r in rules]}
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return len(rules)


def parse_rule(data: dict[str, Any]) -> AutoApprovalRule:
    return AutoApprovalRule(
        id=str(data.get("id", "")),
        name=data.get("name", ""),
        enabled=data.get("enabled", True),
        asset_type=data.get("asset_type", "all"),
        conditions=tuple(
            RuleCondition(
                field=c["field"],
                operator=ConditionOperator(c.get("operator", "equals")),
                value=_as_text(c.get("value", "")),
            )
            for c in data.get("conditions", [])
        ),
        actions=tuple(
            RuleAction(type=RuleActionType(a["type"]), value=_as_text(a.get("value", "")))
            for a in data.get("actions", [])
        ),
        created_by=data.get("created_by", ""),
        created_at=data.get("created_at"),
    )


def serialize_rule(rule: AutoApprovalRule) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": rule.id,
        "name": rule.name,
        "enabled": rule.enabled,
        "asset_type": rule.asset_type,
        "conditions": [
            {"field": c.field, "operator": c.operator.value, "value": c.value}
            for c in rule.conditions
        ],
        "actions": [{"type": a.type.value, "value": a.value} for a in rule.actions],
    }
    if rule.created_by:
        data["created_by"] = rule.created_by
    if rule.created_at:
        data["created_at"] = rule.created_at
    return data


# =============================================================================
# Approver suggestions
# =============================================================================

_FINANCE_CATEGORIES = ("financial", "financial data")
_MARKETING_CATEGORIES = ("marketing", "marketing data")


@dataclass(frozen=True, slots=True)
class ApproverSuggestion:
    name: str
    role: str
    reason: str
    confidence: str
    required: bool = False


def suggest_approvers(submission: Submission) -> list[ApproverSuggestion]:
    """
    Approvers to involve for a submission, in suggestion order.

    APIs need the COE, confidential data needs DDRO and a security steward,
    finance and marketing assets get their domain guardian. A standard data
    steward is added when fewer than two were suggested, and an AE-C
    delegate is always offered.
    """
    suggestions: list[ApproverSuggestion] = []
    category = submission.category.strip().lower()
    classification = str(submission.metadata.get("classification") or "").lower()

    if submission.asset_type is not None and submission.asset_type.value == "api":
        suggestions.append(ApproverSuggestion(
            name="Kelly Schwartz (COE)",
            role="Chief of Excellence",
            reason="Required for all API approvals - handles standardization and documentation checks",
            confidence="high",
            required=True,
        ))
        suggestions.append(ApproverSuggestion(
            name="Engineering Lead",
            role="Technical Lead",
            reason="Engineering Lead has technical context and can approve faster than VPs",
            confidence="high",
        ))

    if classification == "confidential":
        suggestions.append(ApproverSuggestion(
            name="DDRO",
            role="Data & Digital Risk Office",
            reason="Required for confidential data - handles compliance and risk assessment",
            confidence="high",
            required=True,
        ))
        suggestions.append(ApproverSuggestion(
            name="Security PDS",
            role="Product Data Steward",
            reason="Required for security review of highly sensitive data",
            confidence="high",
            required=True,
        ))

    if category in _FINANCE_CATEGORIES:
        suggestions.append(ApproverSuggestion(
            name="Finance Data Guardian",
            role="Domain Data Steward",
            reason="Domain expert for financial data governance",
            confidence="high",
        ))
    elif category in _MARKETING_CATEGORIES:
        suggestions.append(ApproverSuggestion(
            name="Marketing Data Guardian",
            role="Domain Data Steward",
            reason="Domain expert for marketing data",
            confidence="medium",
        ))

    if len(suggestions) < 2:
        suggestions.append(ApproverSuggestion(
            name="Rakesh Sharma (PDS)",
            role="Product Data Steward",
            reason="Standard data governance approval",
            confidence="medium",
        ))

    suggestions.append(ApproverSuggestion(
        name="AE-C Delegate",
        role="Associate Executive Delegate",
        reason="Can approve routine requests, faster than VP-level approval",
        confidence="medium",
    ))
    return suggestions


def required_approvers(submission: Submission) -> list[str]:
    return [s.name for s in suggest_approvers(submission) if s.required]
