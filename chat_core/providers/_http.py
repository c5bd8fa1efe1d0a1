"""各 HTTP 适配器共用的连接与错误映射。"""

import httpx

from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError


def async_client(cfg) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=cfg.http_timeout, trust_env=False)


def network_error(label: str, exc: httpx.RequestError) -> NetworkError:
    return NetworkError(code="NETWORK_ERROR", message=f"{label} network error: {exc}", provider=label)


async def check_response(resp, label: str, streamed: bool = False) -> None:
    """把 429 映射为 RateLimitError，其余 >=400 映射为携带状态码与响应体的 ApiError。"""

    status = resp.status_code
    if status < 400:
        return
    if streamed:
        # 流式响应需先读完响应体才能取 text
        await resp.aread()
    body = resp.text
    if status == 429:
        raise RateLimitError(
            code="RATE_LIMIT", message=f"{label} rate limit", http_status=status, provider=label, body=body
        )
    raise ApiError(
        code="API_ERROR",
        message=f"{label} error {status}: {body}",
        http_status=status,
        provider=label,
        body=body,
    )
