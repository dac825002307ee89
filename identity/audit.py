"""
Alias decision ledger.

Append-only: every reviewer action becomes a new row, including repeats of an
earlier action. Nothing in this module updates or deletes a decision.
"""

from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.logging import get_logger
from identity.errors import InvalidInput, NotFound
from identity.models import AliasDecision, DecisionAction, Employer, EmployerAlias

log = get_logger("audit")

# Actions a reviewer must explain; approve may go without a reason
REASON_REQUIRED = frozenset({DecisionAction.REJECT, DecisionAction.DEFER})


def coerce_action(action: Union[DecisionAction, str]) -> DecisionAction:
    if isinstance(action, DecisionAction):
        return action
    try:
        return DecisionAction(action)
    except ValueError:
        raise InvalidInput(f"Unknown decision action: {action!r}") from None


class AuditLog:
    """
    Records approve / reject / defer decisions on aliases.

    Not idempotent: retrying record_decision after an ambiguous failure may
    leave two rows for the same action, which the ledger accepts.
    """

    def __init__(self, db: Session):
        self.db = db

    def record_decision(
        self,
        employer_id: str,
        alias_id: str,
        action: Union[DecisionAction, str],
        decided_by: str,
        reason: Optional[str] = None,
    ) -> AliasDecision:
        """
        Append a decision for an (employer, alias) pair.

        The decision timestamp is assigned here, not by the caller.

        Raises:
            NotFound: unknown employer, unknown alias, or alias of another employer
            InvalidInput: unknown action, missing decider, or a reject or
                defer without a reason
        """
        action = coerce_action(action)
        if not decided_by:
            raise InvalidInput("A decision needs the id of the person deciding")
        if action in REASON_REQUIRED and not (reason or "").strip():
            raise InvalidInput(f"A {action.value} decision needs a reason")

        if self.db.get(Employer, employer_id) is None:
            raise NotFound("Employer", employer_id)
        alias = self.db.get(EmployerAlias, alias_id)
        if alias is None or alias.employer_id != employer_id:
            raise NotFound("Alias", alias_id)

        decision = AliasDecision(
            employer_id=employer_id,
            alias_id=alias_id,
            action=action,
            decided_by=decided_by,
            reason=reason,
        )
        try:
            self.db.add(decision)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(decision)
        log.info(
            f"Decision {action.value} on alias '{alias.alias}' "
            f"(employer {employer_id}) by {decided_by}"
        )
        return decision

    def history(self, employer_id: str, alias_id: str) -> list[AliasDecision]:
        """All decisions on a pair, oldest first."""
        return list(
            self.db.scalars(
                select(AliasDecision)
                .where(
                    AliasDecision.employer_id == employer_id,
                    AliasDecision.alias_id == alias_id,
                )
                .order_by(AliasDecision.decided_at, AliasDecision.id)
            )
        )
