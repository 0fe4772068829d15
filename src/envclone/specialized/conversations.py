"""
Conversations system cloner.

Clones conversations, their participants and messages. The three-way
relationship is checked before anything is written: every participant and
message must belong to a conversation being cloned. Messages can be
filtered by age and type and their content anonymized. After cloning, a
realtime subscription on the target's messages is attempted.
"""

from __future__ import annotations

import logging
from datetime import datetime

from envclone.access.interface import ConnectionFactory, RealtimeProbe, Row, TableAccess
from envclone.access.transfer import with_timeout
from envclone.anonymization.rules import MessageAnonymizer
from envclone.environments.models import Environment
from envclone.exceptions import IntegrityViolationError, TableAccessError
from envclone.specialized.base import SystemCloner, keys_of, within_age
from envclone.specialized.models import ConversationsCloneOptions, ConversationsCloneResult

logger = logging.getLogger(__name__)

CONVERSATIONS_TABLE = "conversations"
PARTICIPANTS_TABLE = "conversation_participants"
MESSAGES_TABLE = "messages"


def filter_messages(rows: list[Row], options: ConversationsCloneOptions, now: datetime) -> list[Row]:
    types = {t.value for t in options.message_type_filter} if options.message_type_filter else None
    return [
        row
        for row in rows
        if within_age(row, options.max_message_age, now)
        and (types is None or str(row.get("message_type") or "text") in types)
    ]


def dangling_references(rows: list[Row], column: str, keys: set[str], table: str) -> list[str]:
    return [
        f"{table} {row.get('id')} references missing conversation {row[column]}"
        for row in rows
        if row.get(column) is not None and str(row[column]) not in keys
    ]


class ConversationsSystemCloner(SystemCloner[ConversationsCloneResult]):
    """
    Clones the conversations/participants/messages triple.

    Args:
        connection_factory: Produces data store connections for environments
        realtime_probe: Checks that the target accepts realtime subscriptions
        **kwargs: Passed to SystemCloner
    """

    system = "conversations"
    required_tables = (CONVERSATIONS_TABLE, PARTICIPANTS_TABLE, MESSAGES_TABLE)

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        realtime_probe: RealtimeProbe | None = None,
        **kwargs,
    ) -> None:
        super().__init__(connection_factory, **kwargs)
        self._realtime_probe = realtime_probe

    def new_result(self) -> ConversationsCloneResult:
        return ConversationsCloneResult()

    async def clone_conversations_system(
        self,
        source: Environment,
        target: Environment,
        options: ConversationsCloneOptions,
        operation_id: str | None = None,
        *,
        source_access: TableAccess | None = None,
        target_access: TableAccess | None = None,
    ) -> ConversationsCloneResult:
        return await self.run(
            source, target, options, operation_id, source_access=source_access, target_access=target_access
        )

    async def _clone(
        self,
        source: Environment,
        target: Environment,
        source_access: TableAccess,
        target_access: TableAccess,
        options: ConversationsCloneOptions,
        result: ConversationsCloneResult,
    ) -> None:
        await self._require_schema(source_access, "source")
        await self._require_schema(target_access, "target")

        conversations = await self._fetch(source_access, CONVERSATIONS_TABLE)
        participants = await self._fetch(source_access, PARTICIPANTS_TABLE)
        messages: list[Row] = []
        if options.include_messages:
            messages = filter_messages(await self._fetch(source_access, MESSAGES_TABLE), options, self._clock())

        conversation_ids = keys_of(conversations)
        violations = dangling_references(participants, "conversation_id", conversation_ids, PARTICIPANTS_TABLE)
        violations += dangling_references(messages, "conversation_id", conversation_ids, MESSAGES_TABLE)
        if violations:
            if options.preserve_conversation_structure:
                raise IntegrityViolationError(self.system, violations)
            for message in violations:
                result.warnings.append(message)

        if options.anonymize_message_content and messages:
            messages = MessageAnonymizer().anonymize(messages)
            result.messages_anonymized = len(messages)
            result.records_anonymized += len(messages)

        result.conversations_cloned = await self._write(target_access, CONVERSATIONS_TABLE, conversations, result)
        result.participants_cloned = await self._write(target_access, PARTICIPANTS_TABLE, participants, result)
        result.messages_cloned = await self._write(target_access, MESSAGES_TABLE, messages, result)
        result.relationships_preserved = not violations

        result.realtime_validated = await self._validate_realtime(target, result)

    async def _validate_realtime(self, target: Environment, result: ConversationsCloneResult) -> bool | None:
        if self._realtime_probe is None:
            result.warnings.append("Realtime functionality was not validated: no realtime probe configured")
            return None
        try:
            subscribed = await with_timeout(
                self._realtime_probe.can_subscribe(target, MESSAGES_TABLE), self._timeout, MESSAGES_TABLE, "subscribe"
            )
        except TableAccessError as e:
            result.warnings.append(f"Realtime subscription check failed on {target.name}: {e}")
            return False
        if subscribed:
            logger.info("Realtime subscription on %s succeeded for %s", MESSAGES_TABLE, target.name)
            return True
        result.warnings.append(f"Realtime subscription on {MESSAGES_TABLE} could not be established on {target.name}")
        return False


__all__ = [
    "CONVERSATIONS_TABLE",
    "MESSAGES_TABLE",
    "PARTICIPANTS_TABLE",
    "ConversationsSystemCloner",
    "filter_messages",
]
