"""
MindPair — Compare lifecycle telemetry hooks.

The token lifecycle reports what it did to a ``CompareObserver``.  The
default observer discards everything; ``LoggingCompareObserver`` emits one
structured log event per hook.  ``notify`` shields callers from observer
failures: a broken observer is logged and never changes a result.
"""

from __future__ import annotations

from typing import Any

import structlog

logger = structlog.get_logger("mindpair.observer")


def token_preview(token: str) -> str:
    return token[:12]


class CompareObserver:
    """No-op base class.  Override the hooks you care about."""

    def invite_created(self, subject_attempt_id: str, token: str, reused: bool) -> None:
        pass

    def invite_superseded(self, subject_attempt_id: str, token: str) -> None:
        pass

    def invite_completed(
        self,
        token: str,
        paired_attempt_id: str,
        already_completed: bool,
    ) -> None:
        pass

    def invite_resolved(self, token: str, status: str) -> None:
        pass


class LoggingCompareObserver(CompareObserver):
    def invite_created(self, subject_attempt_id: str, token: str, reused: bool) -> None:
        logger.info(
            "invite_created",
            subject_attempt_id=subject_attempt_id,
            token=token_preview(token),
            reused=reused,
        )

    def invite_superseded(self, subject_attempt_id: str, token: str) -> None:
        logger.info(
            "invite_superseded",
            subject_attempt_id=subject_attempt_id,
            token=token_preview(token),
        )

    def invite_completed(
        self,
        token: str,
        paired_attempt_id: str,
        already_completed: bool,
    ) -> None:
        logger.info(
            "invite_completed",
            token=token_preview(token),
            paired_attempt_id=paired_attempt_id,
            already_completed=already_completed,
        )

    def invite_resolved(self, token: str, status: str) -> None:
        logger.debug("invite_resolved", token=token_preview(token), status=status)


def notify(observer: CompareObserver, hook: str, **kwargs: Any) -> None:
    """Call ``observer.<hook>(**kwargs)``, logging and discarding failures."""
    try:
        getattr(observer, hook)(**kwargs)
    except Exception as exc:
        logger.warning("observer_failed", hook=hook, error=str(exc))
