"""
Extension points around dispatch.

Both hooks default to no-ops. `enable_task_decomposition` and
`enable_backtracking` in AgentConfig name the slots a host fills with
its own PlanningHook / RecoveryHook; no decomposition or backtracking
strategy ships with the core.
"""

from ..models import Action, Context, ToolObservation


class PlanningHook:
    """Runs before an Action is dispatched and may rewrite it."""

    async def before_dispatch(self, action: Action, context: Context) -> Action:
        return action


class RecoveryHook:
    """Runs after an Action produced an error observation."""

    async def after_failure(
        self,
        action: Action,
        observation: ToolObservation,
        context: Context,
    ) -> None:
        return None
