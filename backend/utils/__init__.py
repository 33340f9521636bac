"""请求工具：解析投票者标识（客户端 IP）"""

from __future__ import annotations

from fastapi import Request


def get_client_ip(request: Request, proxy_header: str | None = None) -> str | None:
    """
    取客户端 IP 作为投票者标识。

    配置了代理请求头时优先取请求头（多级代理取第一个），
    否则取连接地址；都取不到返回 None。
    """
    if proxy_header:
        value = request.headers.get(proxy_header)
        if value:
            ip = value.split(",")[0].strip()
            return ip or None
        return None

    if request.client and request.client.host:
        return request.client.host
    return None
