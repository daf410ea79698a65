"""
app/resolvers/seller_resolver.py

Links spreadsheet seller text to canonical users.

Strategies run in order and the first one returning a user wins:

1. explicit alias table (spreadsheet name -> user id)
2. exact full-name match against the user directory
3. first token of the seller text against users' first names
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Iterable, Sequence

from app.domain.errors import UnmatchedEntityError
from app.domain.sales import CanonicalUser, ParsedSale, SaleStatus, SellerAlias
from app.resolvers.names import first_token, normalize_seller_text

logger = logging.getLogger(__name__)

SELLER_NOT_MATCHED_MESSAGE = "seller not matched"

SellerStrategy = Callable[[str], "CanonicalUser | None"]


class SellerResolver:
    """
    Ordered-strategy seller matcher over an immutable user directory.
    """

    def __init__(
        self,
        users: Iterable[CanonicalUser],
        aliases: Iterable[SellerAlias] = (),
        *,
        strategies: Sequence[tuple[str, SellerStrategy]] | None = None,
    ) -> None:
        self._users_by_id: dict = {}
        self._users_by_full_name: dict[str, CanonicalUser] = {}
        self._users_by_first_name: dict[str, CanonicalUser] = {}
        for user in users:
            self._users_by_id[user.user_id] = user
            full_name = normalize_seller_text(user.full_name)
            if not full_name:
                continue
            self._users_by_full_name.setdefault(full_name, user)
            self._users_by_first_name.setdefault(first_token(full_name), user)

        self._alias_user_ids = {
            normalize_seller_text(alias.source_name): alias.user_id
            for alias in aliases
            if normalize_seller_text(alias.source_name)
        }
        self._strategies: list[tuple[str, SellerStrategy]] = list(
            strategies
            if strategies is not None
            else (
                ("alias", self.match_alias),
                ("full_name", self.match_full_name),
                ("first_name", self.match_first_name),
            )
        )
        self.match_counts: Counter[str] = Counter()

    def match_alias(self, seller_text: str) -> CanonicalUser | None:
        user_id = self._alias_user_ids.get(seller_text)
        if user_id is None:
            return None
        user = self._users_by_id.get(user_id)
        if user is None:
            logger.debug("Alias %r points to a user outside the directory", seller_text)
        return user

    def match_full_name(self, seller_text: str) -> CanonicalUser | None:
        return self._users_by_full_name.get(seller_text)

    def match_first_name(self, seller_text: str) -> CanonicalUser | None:
        token = first_token(seller_text)
        if not token:
            return None
        return self._users_by_first_name.get(token)

    def match(self, seller_name: str) -> tuple[CanonicalUser, str]:
        """
        Return the matched user and the strategy name that found it.

        Raises UnmatchedEntityError when no strategy succeeds.
        """

        seller_text = normalize_seller_text(seller_name)
        if seller_text:
            for strategy_name, strategy in self._strategies:
                user = strategy(seller_text)
                if user is not None:
                    return user, strategy_name
        raise UnmatchedEntityError(f"No canonical user for seller {seller_name!r}")

    def resolve(self, sale: ParsedSale) -> ParsedSale:
        """
        Attach user and team to a parsed sale. Error rows pass through untouched.
        """

        if sale.status == SaleStatus.ERROR:
            return sale
        try:
            user, strategy_name = self.match(sale.seller_name)
        except UnmatchedEntityError:
            self.match_counts["unmatched"] += 1
            sale.matched_user_id = None
            sale.matched_team_id = None
            sale.status = SaleStatus.UNMATCHED
            sale.error_message = SELLER_NOT_MATCHED_MESSAGE
            return sale

        self.match_counts[strategy_name] += 1
        sale.matched_user_id = user.user_id
        sale.matched_team_id = user.team_id
        sale.status = SaleStatus.MATCHED
        sale.error_message = None
        return sale

    def resolve_all(self, sales: Iterable[ParsedSale]) -> list[ParsedSale]:
        return [self.resolve(sale) for sale in sales]
