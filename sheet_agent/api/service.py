"""对外 API 服务模块。

提供简化的函数接口供上层应用（命令行、桌面宿主）调用：
每个 .xlsx 文件对应一个缓存的会话，连续调用共享对话历史。
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from sheet_agent.agents.session import AgentSession
from sheet_agent.config.settings import settings
from sheet_agent.flows.graph import EventCallback
from sheet_agent.grid.workbook import WorkbookGrid
from sheet_agent.infrastructure.logging.logger import logger
from sheet_agent.providers import create_provider
from sheet_agent.providers.registry import get_provider_config


_sessions: Dict[str, AgentSession] = {}


def _session_key(path: str, sheet: Optional[str]) -> str:
    return f"{Path(path).resolve()}::{sheet or ''}"


async def get_session(
    path: str,
    sheet: Optional[str] = None,
    provider_name: Optional[str] = None,
    model: Optional[str] = None,
    create: bool = False,
) -> AgentSession:
    """获取（或创建）某个工作表的会话。"""

    key = _session_key(path, sheet)
    session = _sessions.get(key)
    if session is None:
        grid = await WorkbookGrid.open(path, sheet=sheet, create=create)
        session = AgentSession(grid, provider_name=provider_name, model=model)
        _sessions[key] = session
    return session


async def arun_sheet_chat(
    path: str,
    user_input: str,
    *,
    sheet: Optional[str] = None,
    provider_name: Optional[str] = None,
    model: Optional[str] = None,
    create: bool = False,
    on_event: Optional[EventCallback] = None,
) -> Dict[str, Any]:
    """对指定工作簿执行一次表格助手请求。

    Args:
        path: .xlsx 文件路径
        user_input: 用户输入内容
        sheet: 工作表名（可选，默认活动工作表）
        create: 文件不存在时是否新建
        on_event: 事件回调（可选），用于实时显示思考过程与正文

    Returns:
        TurnResult.to_dict() 的结果

    Raises:
        ValidationError: 缺少 API Key / 未知服务商
        DocumentTransactionError: 工作簿无法打开
    """
    try:
        session = await get_session(path, sheet, provider_name, model, create)
        result = await session.run(user_input, on_event=on_event)
        return result.to_dict()
    except Exception as e:
        logger.error(f"Sheet chat failed: {e}", extra={"extra": {"path": path, "error": str(e)}})
        raise


def run_sheet_chat(path: str, user_input: str, **kwargs: Any) -> Dict[str, Any]:
    """arun_sheet_chat 的同步版本。"""

    return asyncio.run(arun_sheet_chat(path, user_input, **kwargs))


def reset_sheet_chat(path: str, sheet: Optional[str] = None) -> None:
    """清空某个工作表会话的对话历史。"""

    session = _sessions.get(_session_key(path, sheet))
    if session is not None:
        session.reset()


async def alist_available_models(provider_name: Optional[str] = None, api_key: Optional[str] = None) -> List[str]:
    """在线获取模型列表；为空时退回预设列表。"""

    name = provider_name or settings.default_provider
    client = create_provider(name, api_key=api_key)
    models = await client.list_models()
    if models:
        return models
    try:
        return list(get_provider_config(name).models)
    except KeyError:
        return []


def list_available_models(provider_name: Optional[str] = None, api_key: Optional[str] = None) -> List[str]:
    return asyncio.run(alist_available_models(provider_name, api_key))
