"""
Morning brief - one payload summarising what happened overnight and what
needs a decision. Reading it never changes state: anomalies are detected
without the auto-pause side effect.
"""

from typing import TYPE_CHECKING, Any, Dict, List

from .proposals import ProposalStatus
from .schema import Proposal

if TYPE_CHECKING:
    from .control_plane import ControlPlane

EFFORT_ORDER = {"small": 0, "medium": 1, "large": 2}
CONTENT_DOMAIN = "content"
STRATEGY_TOPIC = "strategy-memo"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def rank_pending(pending: List[Proposal]) -> List[Proposal]:
    """Recommended greenlights first, then smallest effort first."""
    return sorted(
        pending,
        key=lambda p: (p.recommendation != "greenlight", EFFORT_ORDER.get(p.effort, 99))
    )


def generate_brief(plane: 'ControlPlane', activity_limit: int = 100) -> Dict[str, Any]:
    pending = rank_pending(plane.proposals.list_proposals(status=ProposalStatus.PENDING))
    greenlit = plane.proposals.list_proposals(status=ProposalStatus.GREENLIT)
    logs = plane.audit.get_recent_logs(activity_limit)
    budget = plane.budget.get_budget_status()
    anomalies = plane.anomaly.detect()
    recent_research = plane.dossier.get_recent_entries(5)
    strategy_memos = plane.dossier.get_entries(topic_id=STRATEGY_TOPIC, limit=1)
    latest_strategy = strategy_memos[0] if strategy_memos else None

    quick_wins = [p for p in pending if p.effort == "small" and p.recommendation == "greenlight"]
    needs_review = [p for p in pending if p.recommendation != "greenlight"]
    content_ready = [p for p in pending if p.domain == CONTENT_DOMAIN]

    tldr = []
    if quick_wins:
        tldr.append(f"{_plural(len(quick_wins), 'quick win')} ready to greenlight")
    if content_ready:
        tldr.append(f"{_plural(len(content_ready), 'content draft')} to review")
    if needs_review:
        tldr.append(f"{_plural(len(needs_review), 'proposal')} to review")
    if greenlit:
        tldr.append(f"{_plural(len(greenlit), 'proposal')} in pipeline")
    if anomalies:
        tldr.append(_plural(len(anomalies), "system alert"))
    if not budget["within_budget"]:
        tldr.append(f"Budget ceiling reached (${budget['spent']:.2f} of ${budget['ceiling']:.2f})")

    actions = []
    for proposal in quick_wins[:3]:
        actions.append({
            "rank": len(actions) + 1,
            "priority": "quick-win",
            "action": f"Greenlight: {proposal.title}",
            "proposal_id": proposal.id,
            "domain": proposal.domain,
            "effort": proposal.effort
        })
    for proposal in content_ready[:2]:
        actions.append({
            "rank": len(actions) + 1,
            "priority": "content",
            "action": f"Review & post: {proposal.title}",
            "proposal_id": proposal.id
        })

    return {
        "generated_at": plane.clock().isoformat(),
        "pace": plane.state.get_pace().value,
        "mode": plane.state.get_mode().value,
        "tldr": tldr,
        "actions": actions,
        "latest_strategy": latest_strategy.to_dict() if latest_strategy else None,
        "action_items": {
            "quick_wins": [p.to_dict() for p in quick_wins],
            "content_ready": [p.to_dict() for p in content_ready],
            "in_pipeline": [p.to_dict() for p in greenlit],
            "needs_review": [p.to_dict() for p in needs_review]
        },
        "pending_proposals": [p.to_dict() for p in pending],
        "overnight_activity": [entry.to_dict() for entry in logs],
        "budget": budget,
        "anomalies": [a.to_dict() for a in anomalies],
        "recent_research": [entry.to_dict() for entry in recent_research],
        "summary": {
            "total_pending": len(pending),
            "quick_wins": len(quick_wins),
            "content_ready": len(content_ready),
            "in_pipeline": len(greenlit),
            "total_activity": len(logs),
            "blocked_actions": sum(1 for entry in logs if entry.blocked),
            "active_anomalies": len(anomalies),
            "recent_research_count": len(recent_research)
        }
    }
