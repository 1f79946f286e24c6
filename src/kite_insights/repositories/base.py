from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from kite_insights.categorization.rules import Rule
from kite_insights.domain.models import Category, Transaction


class StoreError(Exception):
    """Raised when the store cannot be read or holds malformed records."""
    pass


class TransactionStore(ABC):
    """
    Abstract read-only source of transactions, categories and rules.

    The engines never talk to storage themselves: the service reads one
    consistent snapshot per call and passes plain values in. Swapping
    storage backends only means implementing this interface.
    """

    @abstractmethod
    def list_transactions(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Transaction]:
        """
        Retrieve transactions, optionally within a date range.

        Args:
            start: Include transactions on or after this date
            end: Include transactions on or before this date

        Returns:
            Matching transactions, oldest first

        Raises:
            StoreError: If the store cannot be read
        """
        pass

    @abstractmethod
    def list_categories(self) -> List[Category]:
        pass

    @abstractmethod
    def list_rules(self) -> List[Rule]:
        """
        Retrieve categorization rules.

        Returns:
            Valid rules in stored order; invalid ones are skipped
        """
        pass
