import uvicorn
import os

if __name__ == "__main__":
    # 开发环境热重载，通过环境变量关闭
    is_dev = os.getenv("RELOAD", "true").lower() == "true"

    uvicorn.run(
        "food_station.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=is_dev,
        log_level="info"
    )
