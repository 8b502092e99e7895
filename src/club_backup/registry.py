"""Schema table registry: which tables exist and in what order they restore.

Each ``TableDef`` declares the tables it references.  ``restore_order``
runs a topological sort over those edges so parents always load before
children, and uses each table's position in the curated list as the
tiebreak among tables that are ready at the same time.  Tables the
registry does not know go last, in the order the snapshot lists them.

Usage:
    from club_backup.registry import DEFAULT_REGISTRY

    DEFAULT_REGISTRY.restore_order(["club_members", "profiles", "clubs"])
    # ['profiles', 'clubs', 'club_members']
"""

import heapq
import logging
import math

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class ForeignKey(BaseModel):
    """Foreign key reference to a parent table."""

    table: str          # parent table name
    field: str          # FK column in this table


class TableDef(BaseModel):
    """Definition of a table for backup/restore operations."""

    name: str                                                   # table name
    pk: str = "id"                                              # primary key column
    references: list[ForeignKey] = Field(default_factory=list)  # parents that must load first

    @property
    def depends_on(self) -> set[str]:
        """Names of parent tables, excluding self-references."""
        return {fk.table for fk in self.references if fk.table != self.name}


class TableRegistry(BaseModel):
    """Declarative table registry.  Tables listed parents first."""

    tables: list[TableDef]

    @model_validator(mode="after")
    def _unique_names(self) -> "TableRegistry":
        seen: set[str] = set()
        for table_def in self.tables:
            if table_def.name in seen:
                raise ValueError(f"Duplicate table in registry: {table_def.name}")
            seen.add(table_def.name)
        return self

    @property
    def names(self) -> list[str]:
        """Table names in curated order."""
        return [t.name for t in self.tables]

    def get(self, name: str) -> TableDef | None:
        """Find a TableDef by name."""
        for t in self.tables:
            if t.name == name:
                return t
        return None

    def dependency_rank(self, name: str) -> int | float:
        """Position of ``name`` in the curated list, or ``math.inf`` if unknown.

        Examples:
            >>> DEFAULT_REGISTRY.dependency_rank("profiles")
            0
            >>> DEFAULT_REGISTRY.dependency_rank("audit_log")
            inf
        """
        for index, t in enumerate(self.tables):
            if t.name == name:
                return index
        return math.inf

    def backup_tables(self) -> list[str]:
        """Tables to capture on backup (every registered table)."""
        return self.names

    def restore_order(self, tables: list[str]) -> list[str]:
        """Order ``tables`` so every parent precedes its children.

        Only edges between tables that are both in ``tables`` count.
        Duplicate names are collapsed to their first occurrence.  A
        dependency cycle is logged and broken by curated rank.

        Args:
            tables: Table names, typically ``metadata.tables`` from a snapshot.

        Returns:
            Known tables in dependency order, then unknown tables in
            their original relative order.
        """
        unique = list(dict.fromkeys(tables))
        known = [t for t in unique if self.get(t) is not None]
        unknown = [t for t in unique if self.get(t) is None]

        present = set(known)
        pending: dict[str, set[str]] = {
            name: self.get(name).depends_on & present for name in known
        }
        children: dict[str, list[str]] = {name: [] for name in known}
        for name, parents in pending.items():
            for parent in parents:
                children[parent].append(name)

        ready = [(self.dependency_rank(n), n) for n, deps in pending.items() if not deps]
        heapq.heapify(ready)
        ordered: list[str] = []

        while len(ordered) < len(known):
            if not ready:
                # Cycle: release the lowest-ranked table still waiting
                stuck = min(
                    (n for n in known if n not in ordered and n in pending),
                    key=self.dependency_rank,
                )
                logger.warning(
                    "Dependency cycle among %s; restoring %s first by curated rank",
                    sorted(n for n in pending if n not in ordered), stuck,
                )
                pending[stuck] = set()
                heapq.heappush(ready, (self.dependency_rank(stuck), stuck))

            _, name = heapq.heappop(ready)
            if name in ordered:
                continue
            ordered.append(name)
            for child in children[name]:
                deps = pending.get(child)
                if deps is None or child in ordered:
                    continue
                deps.discard(name)
                if not deps:
                    heapq.heappush(ready, (self.dependency_rank(child), child))

        return ordered + unknown


def _fk(table: str, field: str) -> ForeignKey:
    return ForeignKey(table=table, field=field)


# Club platform tables, parents first.  Backup walks this list in order;
# restore sorts by the declared references with this order as tiebreak.
DEFAULT_REGISTRY = TableRegistry(
    tables=[
        TableDef(name="profiles"),
        TableDef(name="user_roles", references=[_fk("profiles", "user_id")]),
        TableDef(name="children", references=[_fk("profiles", "parent_user_id")]),
        TableDef(name="clubs", references=[_fk("profiles", "owner_id")]),
        TableDef(name="club_facilities", references=[_fk("clubs", "club_id")]),
        TableDef(
            name="facility_operating_hours",
            references=[_fk("club_facilities", "facility_id")],
        ),
        TableDef(
            name="facility_rentable_times",
            references=[_fk("club_facilities", "facility_id")],
        ),
        TableDef(
            name="facility_pictures",
            references=[_fk("club_facilities", "facility_id")],
        ),
        TableDef(name="club_amenities", references=[_fk("clubs", "club_id")]),
        TableDef(name="club_classes", references=[_fk("clubs", "club_id")]),
        TableDef(
            name="activities",
            references=[
                _fk("clubs", "club_id"),
                _fk("club_facilities", "facility_id"),
            ],
        ),
        TableDef(name="activity_schedules", references=[_fk("activities", "activity_id")]),
        TableDef(name="activity_skills", references=[_fk("activities", "activity_id")]),
        TableDef(name="club_packages", references=[_fk("clubs", "club_id")]),
        TableDef(
            name="club_members",
            references=[
                _fk("clubs", "club_id"),
                _fk("profiles", "user_id"),
                _fk("children", "child_id"),
            ],
        ),
        TableDef(
            name="package_activities",
            references=[
                _fk("club_packages", "package_id"),
                _fk("activities", "activity_id"),
            ],
        ),
        TableDef(
            name="package_enrollments",
            references=[
                _fk("club_packages", "package_id"),
                _fk("club_members", "member_id"),
            ],
        ),
        TableDef(
            name="club_instructors",
            references=[
                _fk("clubs", "club_id"),
                _fk("profiles", "user_id"),
            ],
        ),
        TableDef(
            name="instructor_certifications",
            references=[_fk("club_instructors", "instructor_id")],
        ),
        TableDef(
            name="instructor_reviews",
            references=[
                _fk("club_instructors", "instructor_id"),
                _fk("profiles", "user_id"),
            ],
        ),
        TableDef(name="club_pictures", references=[_fk("clubs", "club_id")]),
        TableDef(name="club_products", references=[_fk("clubs", "club_id")]),
        TableDef(name="club_partners", references=[_fk("clubs", "club_id")]),
        TableDef(
            name="club_reviews",
            references=[
                _fk("clubs", "club_id"),
                _fk("profiles", "user_id"),
            ],
        ),
        TableDef(name="club_statistics", references=[_fk("clubs", "club_id")]),
        TableDef(
            name="club_community_posts",
            references=[
                _fk("clubs", "club_id"),
                _fk("profiles", "author_id"),
            ],
        ),
        TableDef(
            name="membership_requests",
            references=[
                _fk("clubs", "club_id"),
                _fk("profiles", "user_id"),
                _fk("club_packages", "package_id"),
            ],
        ),
        TableDef(
            name="membership_history",
            references=[
                _fk("clubs", "club_id"),
                _fk("profiles", "user_id"),
            ],
        ),
        TableDef(
            name="member_acquired_skills",
            references=[
                _fk("club_members", "member_id"),
                _fk("activity_skills", "skill_id"),
            ],
        ),
        TableDef(name="bank_accounts", references=[_fk("clubs", "club_id")]),
    ]
)
