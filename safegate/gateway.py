"""SafetyGateway: the engine surface used by the CLI/command layer.

Outbound control flow::

    fields → sanitize_fields → rate gate → scan_outbound → allow / block → audit entry

Inbound control flow::

    payload → sanitize_structured → collect_strings → scan_inbound → InboundReport

Every policy outcome is a returned value (OutboundDecision, RateDecision,
InboundReport). Nothing here raises for a block, a denial or an unavailable
semantic collaborator.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from safegate.audit.log import build_content_audit
from safegate.audit.models import AuditEntry
from safegate.audit.protocol import AuditSink, JsonlAuditLog
from safegate.config import Config
from safegate.constants import DEFAULT_MAX_WAIT_S
from safegate.models.decision import InboundReport, OutboundDecision, OutcomeType, RateAction, RateDecision
from safegate.models.safety import SafetyMatch, SanitizationResult, SensitiveEntry
from safegate.ratelimit import RateGovernor, extract_retry_after_seconds
from safegate.scanner import inbound, outbound
from safegate.scanner.unicode import collect_strings, sanitize, sanitize_fields, sanitize_structured
from safegate.semantic.protocol import SemanticCollaborator
from safegate.semantic.qmd import resolve_collaborator
from safegate.store import sensitive
from safegate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OutboundRequest:
    """An agent-authored write about to leave the machine.

    Fields:
        profile:     Agent profile.
        action:      Audit action identifier, e.g. ``post.create``.
        method:      HTTP method.
        endpoint:    Endpoint path.
        rate_action: Rate-governor bucket (``request``, ``comment`` or ``post``).
        fields:      Text fields to sanitize and scan (e.g. title / content / url).
        meta:        Extra metadata copied into the audit entry.
    """

    profile: str
    action: str
    method: str
    endpoint: str
    rate_action: RateAction
    fields: Mapping[str, Optional[str]] = field(default_factory=dict)
    meta: Mapping[str, Any] = field(default_factory=dict)

    def outbound_text(self, sanitized: Mapping[str, Optional[str]]) -> str:
        return "\n".join(value for value in sanitized.values() if isinstance(value, str) and value)


class SafetyGateway:
    """Binds the scanners, stores, rate governor and audit log to one state root.

    Args:
        config:       Loaded Config; defaults when None.
        collaborator: Semantic collaborator; resolved from config when None.
        audit:        Audit sink; JSON-lines file under the state root when None.
        governor:     Rate governor; file-backed under the state root when None.
        sleep:        Coroutine used to wait out rate limits (injectable for tests).
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        collaborator: Optional[SemanticCollaborator] = None,
        audit: Optional[AuditSink] = None,
        governor: Optional[RateGovernor] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config or Config.defaults()
        paths = self.config.paths
        self.collaborator = collaborator if collaborator is not None else resolve_collaborator(self.config)
        self.audit = audit if audit is not None else JsonlAuditLog(paths.audit_log)
        self.governor = governor if governor is not None else RateGovernor(paths.rate_limits)
        self.sleep = sleep

    # ── Engine operations ────────────────────────────────────────────────────

    def sanitize(self, text: str) -> SanitizationResult:
        return sanitize(text)

    async def scan_inbound(
        self,
        text: str,
        use_semantic: bool = True,
        scan_context: Optional[dict[str, Any]] = None,
    ) -> list[SafetyMatch]:
        return await inbound.scan_inbound(
            text,
            use_semantic,
            collaborator=self.collaborator,
            config=self.config,
            scan_context=scan_context,
        )

    async def scan_outbound(
        self,
        text: str,
        profile: str,
        entries: Optional[list[SensitiveEntry]] = None,
        scan_context: Optional[dict[str, Any]] = None,
    ) -> list[SafetyMatch]:
        if entries is None:
            entries = self.list_sensitive(profile)
        return await outbound.scan_outbound(
            text,
            profile,
            entries,
            collaborator=self.collaborator,
            config=self.config,
            scan_context=scan_context,
        )

    def check_rate_limit(self, profile: str, action: RateAction) -> RateDecision:
        return self.governor.check(profile, action)

    def record_action(self, profile: str, action: RateAction) -> None:
        self.governor.record(profile, action)

    def apply_server_retry_after(self, profile: str, action: RateAction, retry_after_seconds: float) -> None:
        self.governor.apply_retry_after(profile, action, retry_after_seconds)

    def apply_retry_after_body(self, profile: str, action: RateAction, body: Any) -> Optional[float]:
        """Apply the retry-after hint of a 429 body, if it carries a positive one."""
        seconds = extract_retry_after_seconds(body)
        if seconds is not None and seconds > 0:
            self.apply_server_retry_after(profile, action, seconds)
            return seconds
        return None

    def append_audit(self, entry: AuditEntry) -> bool:
        return self.audit.append(entry)

    # ── Sensitive entries ────────────────────────────────────────────────────

    def list_sensitive(self, profile: str) -> list[SensitiveEntry]:
        return sensitive.list_entries(self.config.paths.sensitive_store, profile)

    def add_sensitive(self, profile: str, entry: SensitiveEntry) -> list[SensitiveEntry]:
        return sensitive.upsert_entry(self.config.paths.sensitive_store, profile, entry)

    def remove_sensitive(self, profile: str, label: str) -> Optional[SensitiveEntry]:
        return sensitive.remove_entry(self.config.paths.sensitive_store, profile, label)

    # ── Rate-limit wait loop ─────────────────────────────────────────────────

    async def enforce_rate_limit(
        self,
        profile: str,
        action: RateAction,
        wait: bool = False,
        max_wait_s: float = DEFAULT_MAX_WAIT_S,
    ) -> RateDecision:
        """Check the limit; when ``wait`` is set, sleep through denials up to ``max_wait_s`` each.

        Returns the first allowing decision, or the denial that ended the loop.
        """
        max_wait_ms = max(1.0, max_wait_s) * 1000
        while True:
            decision = self.check_rate_limit(profile, action)
            if decision.allowed or not wait:
                return decision
            if decision.wait_ms > max_wait_ms:
                logger.info("Rate limit wait exceeds maximum", wait_ms=decision.wait_ms, max_wait_s=max_wait_s)
                return decision
            logger.info("Rate limited, waiting", reason=decision.reason, wait_s=decision.wait_seconds)
            await self.sleep(decision.wait_ms / 1000)

    # ── Outbound gate ────────────────────────────────────────────────────────

    def log_outbound(
        self,
        request: OutboundRequest,
        status: OutcomeType,
        content: Optional[str],
        reason: Optional[str] = None,
        matches: Optional[list[SafetyMatch]] = None,
        sanitization: Optional[list[str]] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> AuditEntry:
        """Build and append the audit entry for one outbound outcome."""
        merged_meta = {**request.meta, **(meta or {})}
        entry = AuditEntry(
            profile=request.profile,
            action=request.action,
            method=request.method,
            endpoint=request.endpoint,
            status=status,
            reason=reason,
            safety_matches=[match.to_dict() for match in matches or []],
            sanitization=list(sanitization or []),
            meta=merged_meta,
            **build_content_audit(content),
        )
        self.append_audit(entry)
        return entry

    async def guard_outbound(
        self,
        request: OutboundRequest,
        allow_sensitive: bool = False,
        dry_run: bool = False,
        wait: bool = False,
        max_wait_s: float = DEFAULT_MAX_WAIT_S,
    ) -> OutboundDecision:
        """Decide whether ``request`` may be sent.

        Blocks (rate limit or sensitive match) and dry runs are audited here.
        An allowed, non-dry-run decision is audited by ``complete_outbound``
        once the caller knows the server's answer.
        """
        payload = sanitize_fields(request.fields)
        sanitized: dict[str, Optional[str]] = dict(payload.value)
        text = request.outbound_text(sanitized)

        if not dry_run:
            rate = await self.enforce_rate_limit(request.profile, request.rate_action, wait, max_wait_s)
            if not rate.allowed:
                self.log_outbound(
                    request, "blocked", text,
                    reason="rate_limit",
                    sanitization=payload.warnings,
                    meta={"rate_reason": rate.reason, "wait_ms": rate.wait_ms},
                )
                return OutboundDecision(
                    allowed=False,
                    reason="rate_limit",
                    sanitized=sanitized,
                    sanitization=payload.warnings,
                    wait_ms=rate.wait_ms,
                )

        scan_context: dict[str, Any] = {}
        matches = await self.scan_outbound(text, request.profile, scan_context=scan_context)
        warnings = payload.warnings + [w for w in scan_context.get("warnings", []) if w not in payload.warnings]
        semantic_meta = {"semantic": scan_context.get("semantic", "skipped")}

        if matches and not allow_sensitive:
            self.log_outbound(
                request, "blocked", text,
                reason="safety",
                matches=matches,
                sanitization=warnings,
                meta=semantic_meta,
            )
            decision = OutboundDecision(
                allowed=False,
                reason="safety",
                matches=matches,
                sanitized=sanitized,
                sanitization=warnings,
            )
            logger.warning("Outbound content blocked", profile=request.profile, action=request.action)
            return decision

        overridden = bool(matches)
        if overridden:
            logger.warning("Outbound content sent under override", profile=request.profile, action=request.action)

        decision = OutboundDecision(
            allowed=True,
            matches=matches,
            sanitized=sanitized,
            sanitization=warnings,
            overridden=overridden,
            dry_run=dry_run,
        )
        if dry_run:
            self.log_outbound(
                request, "dry_run", text,
                matches=matches,
                sanitization=warnings,
                meta={**semantic_meta, "overridden": overridden},
            )
        return decision

    def complete_outbound(
        self,
        request: OutboundRequest,
        decision: OutboundDecision,
        response_status: int,
        response_body: Any = None,
    ) -> AuditEntry:
        """Record the server's answer to an allowed outbound request.

        2xx → the action is counted by the rate governor and audited as sent.
        Anything else is audited as blocked with ``http_<status>``; a 429 also
        applies the server's retry-after hint.
        """
        text = request.outbound_text(decision.sanitized)
        meta: dict[str, Any] = {"http_status": response_status}
        if decision.overridden:
            meta["overridden"] = True

        if 200 <= response_status < 300:
            self.record_action(request.profile, request.rate_action)
            return self.log_outbound(
                request, "sent", text,
                matches=decision.matches,
                sanitization=decision.sanitization,
                meta=meta,
            )

        if response_status == 429:
            retry = self.apply_retry_after_body(request.profile, request.rate_action, response_body)
            if retry is not None:
                meta["retry_after_seconds"] = retry
        return self.log_outbound(
            request, "blocked", text,
            reason=f"http_{response_status}",
            matches=decision.matches,
            sanitization=decision.sanitization,
            meta=meta,
        )

    # ── Inbound ──────────────────────────────────────────────────────────────

    async def inspect_inbound(self, payload: Any, use_semantic: bool = True) -> InboundReport:
        """Sanitize a JSON-like payload and annotate it with inbound safety matches."""
        sanitized = sanitize_structured(payload)
        strings = collect_strings(sanitized.value)
        if not strings:
            return InboundReport(data=sanitized.value, sanitization=list(sanitized.warnings))

        combined = "\n".join(strings)
        scan_context: dict[str, Any] = {}
        matches = await self.scan_inbound(combined, use_semantic, scan_context=scan_context)

        warnings = list(sanitized.warnings)
        for warning in scan_context.get("warnings", []):
            if warning not in warnings:
                warnings.append(warning)

        return InboundReport(
            data=sanitized.value,
            safety=matches,
            sanitization=warnings,
            truncated=bool(scan_context.get("truncated")),
            semantic=scan_context.get("semantic", "skipped"),
            scanned_chars=int(scan_context.get("scanned_chars", 0)),
            total_chars=len(combined),
        )
