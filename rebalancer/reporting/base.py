"""Abstract base class for report renderers."""

from abc import ABC, abstractmethod

from rebalancer.portfolio.result import RebalanceResult


class ReportRenderer(ABC):
    """Presents a rebalancing result to a human.

    Renderers are injected into RebalanceAPI; the engine itself never
    formats output.
    """

    @abstractmethod
    def render(self, result: RebalanceResult) -> None:
        """Render the allocation report and trade plan.

        Args:
            result: Completed rebalancing result
        """
        pass
