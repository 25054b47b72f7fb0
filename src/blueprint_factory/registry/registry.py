"""BlueprintRegistry — content-addressed store of deployable blueprints.

Records live in a dense arena indexed by id (``id - 1``).  Auxiliary
indexes (content hash → id, category → ids, author → ids) are maintained
incrementally on every mutation, so no query scans the arena except
``search``.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Iterable

from blueprint_factory.chain.address import require_address, to_address, to_hash32
from blueprint_factory.chain.events import (
    BLUEPRINT_ACTIVATED,
    BLUEPRINT_DEACTIVATED,
    BLUEPRINT_REGISTERED,
    BLUEPRINT_UPDATED,
    DEPLOYMENT_RECORDED,
    FACTORY_BOUND,
    EventLog,
)
from blueprint_factory.chain.governance import Governance
from blueprint_factory.chain.journal import StateJournal, entrypoint
from blueprint_factory.core.errors import (
    BlueprintInactive,
    DuplicateContent,
    EmptyField,
    MalformedInput,
    NotAuthor,
    NotFound,
    Unauthorized,
)
from blueprint_factory.core.types import Blueprint, Category
from blueprint_factory.registry.manifests import BlueprintManifest

log = logging.getLogger(__name__)


def _to_category(value: Any) -> Category:
    try:
        return Category(value)
    except ValueError as exc:
        raise MalformedInput(
            f"Invalid category '{value}'. "
            f"Valid categories: {', '.join(c.value for c in Category)}",
            field="category",
            value=value,
        ) from exc


def _to_tags(tags: Iterable[str] | str) -> tuple[str, ...]:
    # A bare string is one tag, not a sequence of characters.
    if isinstance(tags, str):
        return (tags,) if tags else ()
    return tuple(tags)


def _is_id(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_window(offset: int, limit: int) -> None:
    if offset < 0 or limit < 0:
        raise MalformedInput(
            f"offset and limit must be non-negative (got {offset}, {limit})",
            offset=offset,
            limit=limit,
        )


class BlueprintRegistry:
    """Registry of blueprints keyed by sequential id and content hash.

    Every mutating method takes the caller identity first and runs as one
    atomic, non-reentrant transaction.  Only the bound factory may record
    deployments against a blueprint.
    """

    def __init__(
        self,
        address: str,
        governance: Governance,
        journal: StateJournal,
        events: EventLog,
        clock: Callable[[], int],
    ) -> None:
        self.address = require_address(address, "registry_address")
        self._governance = governance
        self._journal = journal
        self._events = events
        self._clock = clock
        self._entered = False

        self._blueprints: list[Blueprint] = []
        self._by_hash: dict[str, int] = {}
        self._by_category: dict[Category, list[int]] = {}
        self._by_author: dict[str, list[int]] = {}
        self._factory: str | None = None

    # ── Administration ────────────────────────────────────────────────────

    @property
    def factory(self) -> str | None:
        """Address allowed to record deployments, if bound."""
        return self._factory

    @entrypoint
    def set_factory(self, sender: str, factory: Any) -> None:
        self._governance.require_admin(sender, "set_factory")
        self._journal.set_attr(self, "_factory", require_address(factory, "factory"))
        self._events.emit(FACTORY_BOUND, self.address, factory=self._factory)
        log.info("Registry %s bound to factory %s", self.address, self._factory)

    # ── Registration ──────────────────────────────────────────────────────

    @entrypoint
    def register_blueprint(
        self,
        sender: str,
        name: str,
        description: str,
        version: str,
        content_hash: Any,
        locator: str,
        category: Category | str,
        tags: Iterable[str] | str = (),
        init_schema: str = "",
    ) -> int:
        """Register a new blueprint and return its id.

        Raises EmptyField for an empty name/locator or zero hash, and
        DuplicateContent if the hash is already registered.
        """
        return self._register(
            sender, name, description, version, content_hash,
            locator, category, tags, init_schema,
        )

    @entrypoint
    def register_manifest(self, sender: str, manifest: BlueprintManifest) -> int:
        """Register a blueprint described by a validated manifest."""
        return self._register(
            sender,
            manifest.name,
            manifest.description,
            manifest.version,
            manifest.content_hash,
            manifest.locator,
            manifest.category,
            manifest.tags,
            manifest.init_schema,
        )

    def _register(
        self,
        sender: str,
        name: str,
        description: str,
        version: str,
        content_hash: Any,
        locator: str,
        category: Category | str,
        tags: Iterable[str] | str,
        init_schema: str,
    ) -> int:
        if not name:
            raise EmptyField("Blueprint name must not be empty", field="name")
        if not locator:
            raise EmptyField("Blueprint locator must not be empty", field="locator")
        content_hash = to_hash32(content_hash, "content_hash")
        category = _to_category(category)

        existing = self._by_hash.get(content_hash)
        if existing is not None:
            raise DuplicateContent(
                f"Content hash {content_hash} already registered as blueprint {existing}",
                content_hash=content_hash,
                blueprint_id=existing,
            )

        blueprint_id = len(self._blueprints) + 1
        blueprint = Blueprint(
            id=blueprint_id,
            content_hash=content_hash,
            locator=locator,
            name=name,
            author=sender,
            category=category,
            created_at=self._clock(),
            description=description or "",
            version=version or "",
            tags=_to_tags(tags),
            init_schema=init_schema or "",
        )
        journal = self._journal
        journal.append(self._blueprints, blueprint)
        journal.set_item(self._by_hash, content_hash, blueprint_id)
        journal.add_to_index(self._by_category, category, blueprint_id)
        journal.add_to_index(self._by_author, sender, blueprint_id)

        self._events.emit(
            BLUEPRINT_REGISTERED,
            self.address,
            blueprint_id=blueprint_id,
            author=sender,
            content_hash=content_hash,
            locator=locator,
            category=category.value,
            name=name,
        )
        log.info("Registered blueprint %d '%s' (%s) by %s", blueprint_id, name, category.value, sender)
        return blueprint_id

    # ── Mutation ──────────────────────────────────────────────────────────

    @entrypoint
    def update_metadata(
        self,
        sender: str,
        blueprint_id: int,
        name: str | None = None,
        description: str | None = None,
        version: str | None = None,
        init_schema: str | None = None,
        tags: Iterable[str] | str | None = None,
    ) -> Blueprint:
        """Replace each non-empty field; empty or None fields are left as-is."""
        current = self.get(blueprint_id)
        if sender != current.author:
            raise NotAuthor(
                f"Only the author {current.author} may update blueprint {blueprint_id}",
                blueprint_id=blueprint_id,
                caller=sender,
            )

        changes: dict[str, Any] = {}
        if name:
            changes["name"] = name
        if description:
            changes["description"] = description
        if version:
            changes["version"] = version
        if init_schema:
            changes["init_schema"] = init_schema
        if tags:
            changes["tags"] = _to_tags(tags)

        updated = dataclasses.replace(current, **changes)
        self._journal.set_item(self._blueprints, blueprint_id - 1, updated)
        self._events.emit(
            BLUEPRINT_UPDATED,
            self.address,
            blueprint_id=blueprint_id,
            fields=sorted(changes),
        )
        log.info("Updated blueprint %d (%s)", blueprint_id, ", ".join(sorted(changes)) or "no changes")
        return updated

    @entrypoint
    def set_active(self, sender: str, blueprint_id: int, active: bool) -> None:
        """Toggle the lifecycle flag (author or administrator)."""
        current = self.get(blueprint_id)
        if sender != current.author and sender != self._governance.admin:
            raise NotAuthor(
                f"Only the author or administrator may change blueprint {blueprint_id}",
                blueprint_id=blueprint_id,
                caller=sender,
            )
        self._journal.set_item(
            self._blueprints, blueprint_id - 1, dataclasses.replace(current, active=bool(active)),
        )
        kind = BLUEPRINT_ACTIVATED if active else BLUEPRINT_DEACTIVATED
        self._events.emit(kind, self.address, blueprint_id=blueprint_id, by=sender)
        log.info("Blueprint %d %s by %s", blueprint_id, "activated" if active else "deactivated", sender)

    @entrypoint
    def record_deployment_event(
        self,
        sender: str,
        blueprint_id: int,
        creator: Any,
        instance_address: Any,
    ) -> int:
        """Count one instance created from *blueprint_id*; factory only.

        Returns the new deployment count.
        """
        if self._factory is None or sender != self._factory:
            raise Unauthorized(
                f"Only the bound factory may record deployments; caller {sender} is not",
                operation="record_deployment_event",
                caller=sender,
            )
        current = self.get(blueprint_id)
        if not current.active:
            raise BlueprintInactive(
                f"Blueprint {blueprint_id} is inactive",
                blueprint_id=blueprint_id,
            )
        creator = to_address(creator, "creator")
        instance_address = to_address(instance_address, "instance_address")

        count = current.deployment_count + 1
        self._journal.set_item(
            self._blueprints, blueprint_id - 1, dataclasses.replace(current, deployment_count=count),
        )
        self._events.emit(
            DEPLOYMENT_RECORDED,
            self.address,
            blueprint_id=blueprint_id,
            creator=creator,
            instance=instance_address,
            deployment_count=count,
        )
        return count

    # ── Queries ───────────────────────────────────────────────────────────

    def get(self, blueprint_id: int) -> Blueprint:
        """Return the blueprint record for *blueprint_id*."""
        if not _is_id(blueprint_id) or not 1 <= blueprint_id <= len(self._blueprints):
            raise NotFound(
                f"Blueprint {blueprint_id} not found "
                f"(registered ids: 1..{len(self._blueprints)})",
                blueprint_id=blueprint_id,
            )
        return self._blueprints[blueprint_id - 1]

    def get_by_content_hash(self, content_hash: Any) -> int:
        """Return the id registered for *content_hash*, or 0 if none."""
        try:
            key = to_hash32(content_hash, "content_hash")
        except (EmptyField, MalformedInput):
            return 0
        return self._by_hash.get(key, 0)

    def ids_by_category(self, category: Category | str) -> list[int]:
        return list(self._by_category.get(_to_category(category), []))

    def ids_by_author(self, author: Any) -> list[int]:
        return list(self._by_author.get(to_address(author, "author"), []))

    def all_ids(self) -> list[int]:
        return list(range(1, len(self._blueprints) + 1))

    def list_paginated(self, offset: int, limit: int) -> tuple[list[Blueprint], int]:
        """Return ``(records[offset:offset+limit], total)`` in id order."""
        _check_window(offset, limit)
        total = len(self._blueprints)
        return self._blueprints[offset:offset + limit], total

    def search(self, query: str, category: Category | str | None = None) -> list[Blueprint]:
        """Case-insensitive match of *query* in name, description or tags."""
        needle = query.lower()
        pool = (
            [self._blueprints[i - 1] for i in self.ids_by_category(category)]
            if category is not None
            else self._blueprints
        )
        return [
            bp for bp in pool
            if needle in bp.name.lower()
            or needle in bp.description.lower()
            or any(needle in tag.lower() for tag in bp.tags)
        ]

    def count(self) -> int:
        return len(self._blueprints)

    def __contains__(self, blueprint_id: object) -> bool:
        return _is_id(blueprint_id) and 1 <= blueprint_id <= len(self._blueprints)

    def __len__(self) -> int:
        return len(self._blueprints)
