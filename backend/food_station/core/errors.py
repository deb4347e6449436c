"""业务异常 - 由 main.py 中注册的处理器转换为 HTTP 响应"""

from fastapi import Request
from fastapi.responses import JSONResponse


class StationError(Exception):
    """加工站业务异常基类"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StationError):
    """参数不合法：日期格式、周/月/年范围、未知产品线等"""
    status_code = 400


class NotFoundError(StationError):
    """请求的时间段没有对应的菜单"""
    status_code = 404


async def station_error_handler(request: Request, exc: StationError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
