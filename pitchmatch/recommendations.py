"""Recommendation scorer.

Ranks profiles of the opposite role by how well their industry and location
match the viewer's. Each of the two fields contributes:

    2  case-insensitive equality
    1  one value is a case-insensitive substring of the other
    0  no relation, or either side missing

Candidates already connected to the viewer (any status, either direction),
already favorited by the viewer, or the viewer itself are excluded. Ties on
score are broken by newest ``created_at`` first, then by id, so repeated
calls over the same data return the same order.

Example:
    >>> match_tier("Fintech", "fintech")
    2
    >>> match_tier("San Francisco", "Francisco")
    1
    >>> score_candidate(("Fintech", "NYC"), ("fintech", "San Francisco"))
    2
"""

from typing import Optional

from sqlmodel import Session, select

from pitchmatch.connections import connected_profile_ids
from pitchmatch.favorites import favorited_profile_ids
from pitchmatch.logging import logger
from pitchmatch.metrics import instrument
from pitchmatch.models import EXTENSION_TABLES, ProfileRow, Role
from pitchmatch.profiles import matching_attributes, require_profile
from pitchmatch.types import RecommendedProfile
from pitchmatch.utils import clamp_limit, clamp_offset, paginate

MatchAttributes = tuple[Optional[str], Optional[str]]

MAX_SCORE = 4


def match_tier(viewer_value: Optional[str], candidate_value: Optional[str]) -> int:
    """Score one attribute pair: 2 equal, 1 substring either way, else 0."""
    if not viewer_value or not candidate_value:
        return 0
    a = viewer_value.lower()
    b = candidate_value.lower()
    if a == b:
        return 2
    if a in b or b in a:
        return 1
    return 0


def score_candidate(viewer: MatchAttributes, candidate: MatchAttributes) -> int:
    """Sum of industry and location tiers, in the range 0-4."""
    return match_tier(viewer[0], candidate[0]) + match_tier(viewer[1], candidate[1])


class RecommendationService:
    """Produce ranked recommendations for a viewer.

    Args:
        session: SQLModel Session bound to the current unit of work
    """

    def __init__(self, session: Session):
        self.session = session

    @instrument("recommend", component="recommendations")
    def recommend(
        self,
        viewer_profile_id: int,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[RecommendedProfile]:
        """Rank opposite-role profiles for ``viewer_profile_id``.

        Args:
            viewer_profile_id: Acting profile
            limit: Page size (default 10, capped); applied after sorting
            offset: Rows to skip; applied after sorting

        Returns:
            Ranked candidates with their relevance score

        Raises:
            NotFoundError: If the viewer profile does not exist
        """
        limit = clamp_limit(limit)
        offset = clamp_offset(offset)
        viewer = require_profile(self.session, viewer_profile_id)
        viewer_attributes = matching_attributes(self.session, viewer)
        target_role = Role(viewer.role).opposite

        excluded = (
            connected_profile_ids(self.session, viewer.id)  # type: ignore[arg-type]
            | favorited_profile_ids(self.session, viewer.id)  # type: ignore[arg-type]
            | {viewer.id}
        )

        table = EXTENSION_TABLES[target_role]
        stmt = (
            select(ProfileRow, table)
            .join(table, table.profile_id == ProfileRow.id, isouter=True)  # type: ignore[attr-defined]
            .where(ProfileRow.role == target_role.value)
        )

        ranked: list[RecommendedProfile] = []
        for profile, extension in self.session.exec(stmt).all():
            if profile.id in excluded:
                continue
            candidate_attributes = (
                extension.matching_attributes() if extension is not None else (None, None)
            )
            ranked.append(
                {
                    "profile": profile.summary(),
                    "created_at": profile.created_at,
                    "extension": extension.extension_data() if extension is not None else None,
                    "relevance_score": score_candidate(viewer_attributes, candidate_attributes),
                }
            )

        ranked.sort(
            key=lambda r: (r["relevance_score"], r["created_at"], r["profile"]["id"]),
            reverse=True,
        )
        logger.debug(
            f"Scored {len(ranked)} {target_role.value} candidates for profile {viewer.id}"
        )
        return paginate(ranked, limit, offset)


__all__ = ["RecommendationService", "match_tier", "score_candidate", "MAX_SCORE"]
