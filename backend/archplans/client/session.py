"""
客户端会话管理：登录、注册、令牌轮换与定时刷新

访问令牌 15 分钟过期，默认每 14 分钟主动刷新一次；刷新令牌一次性使用，
每次刷新都换成新的令牌对。会话对象显式创建、显式传递，可注入自定义
httpx.AsyncClient（测试中使用 MockTransport）。
"""
import asyncio
import enum
import logging
from typing import Any, Dict, Optional

import httpx

from archplans.core.config import settings

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    LOGGED_OUT = "logged_out"


class SessionError(Exception):
    """登录或注册失败，status_code 为服务端返回的状态码"""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json().get("detail") or response.reason_phrase
    except ValueError:
        return response.text or response.reason_phrase


class SessionManager:
    """
    持有当前用户与令牌对的会话。

    用法:
        async with SessionManager("https://shop.example.com/api") as session:
            await session.login(email, password)
            session.start_auto_refresh()
            resp = await session.client.get(session.base_url + "/orders", headers=session.auth_headers())
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        refresh_interval: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=30.0)
        if refresh_interval is None:
            refresh_interval = settings.SESSION_REFRESH_INTERVAL_SECONDS
        self.refresh_interval = refresh_interval
        self.user: Optional[Dict[str, Any]] = None
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.state = SessionState.ANONYMOUS
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: Optional[asyncio.Task] = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None and self.state in (SessionState.AUTHENTICATED, SessionState.REFRESHING)

    def auth_headers(self) -> Dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    def _apply_auth_response(self, data: Dict[str, Any]) -> None:
        tokens = data["tokens"]
        self.user = data.get("user")
        self.access_token = tokens["access_token"]
        self.refresh_token = tokens["refresh_token"]
        self.state = SessionState.AUTHENTICATED

    def _clear(self) -> None:
        self.user = None
        self.access_token = None
        self.refresh_token = None
        self.state = SessionState.LOGGED_OUT

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        response = await self.client.post(self._url("/auth/login"), json={"email": email, "password": password})
        if response.status_code != 200:
            raise SessionError(_error_detail(response), response.status_code)
        self._apply_auth_response(response.json())
        logger.info("登录成功 %s", email)
        return self.user

    async def register(self, email: str, password: str, name: str) -> Dict[str, Any]:
        response = await self.client.post(
            self._url("/auth/register"), json={"email": email, "password": password, "name": name}
        )
        if response.status_code not in (200, 201):
            raise SessionError(_error_detail(response), response.status_code)
        self._apply_auth_response(response.json())
        return self.user

    async def refresh(self) -> bool:
        """
        用刷新令牌换新令牌对。

        刷新令牌被拒（401）时本地登出并返回 False；网络错误保留现有令牌，
        同样返回 False，由下一轮重试。
        """
        async with self._refresh_lock:
            if not self.refresh_token:
                return False
            previous_state = self.state
            self.state = SessionState.REFRESHING
            try:
                response = await self.client.post(
                    self._url("/auth/refresh"), json={"refresh_token": self.refresh_token}
                )
            except httpx.HTTPError as e:
                logger.warning("刷新令牌请求失败: %s", e)
                self.state = previous_state
                return False
            if response.status_code == 401:
                logger.info("刷新令牌已失效，退出登录")
                await self.logout(local_only=True)
                return False
            if response.status_code != 200:
                logger.warning("刷新令牌失败 status=%s", response.status_code)
                self.state = previous_state
                return False
            self._apply_auth_response(response.json())
            return True

    async def logout(self, local_only: bool = False) -> None:
        """先通知服务端作废刷新令牌，再丢弃本地令牌；服务端失败不影响本地登出"""
        if not local_only and self.access_token:
            try:
                await self.client.post(self._url("/auth/logout"), headers=self.auth_headers())
            except httpx.HTTPError as e:
                logger.warning("服务端登出失败: %s", e)
        self._clear()

    async def verify(self) -> Optional[Dict[str, Any]]:
        """校验访问令牌，有效时返回用户信息"""
        if not self.access_token:
            return None
        response = await self.client.post(self._url("/auth/verify"), headers=self.auth_headers())
        if response.status_code != 200:
            return None
        self.user = response.json()
        return self.user

    async def _auto_refresh_loop(self) -> None:
        """登出后结束；单次刷新出错只记日志，下一轮继续"""
        while self.state != SessionState.LOGGED_OUT:
            await asyncio.sleep(self.refresh_interval)
            if self.state == SessionState.LOGGED_OUT:
                break
            if not self.refresh_token:
                continue
            try:
                await self.refresh()
            except (KeyError, TypeError, ValueError) as e:
                logger.error("刷新令牌响应无法解析: %s", e)
                if self.state == SessionState.REFRESHING:
                    self.state = SessionState.AUTHENTICATED
        logger.info("会话已登出，停止定时刷新")

    def start_auto_refresh(self) -> asyncio.Task:
        """启动定时刷新任务（需在事件循环中调用），重复调用返回同一任务"""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(self._auto_refresh_loop())
        return self._refresh_task

    async def stop_auto_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def aclose(self) -> None:
        await self.stop_auto_refresh()
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "SessionManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
