"""动作系统：动作清单、样式、写入防撞与执行器。"""

from sheet_agent.actions.collision import CollisionResolver, compute_row_offset
from sheet_agent.actions.executor import ActionExecutor

__all__ = ["ActionExecutor", "CollisionResolver", "compute_row_offset"]
