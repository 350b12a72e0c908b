from fastapi import Request

LOOPBACK = "127.0.0.1"


def get_client_ip(request: Request) -> str:
    """
    Caller address as seen through proxies: the first X-Forwarded-For entry,
    then X-Real-IP, then loopback.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return LOOPBACK
