import uvicorn
from access_control.core.config import settings

def run_http():
    """Run HTTP server on port 9106"""
    print("Starting access control service on port 9106...")
    uvicorn.run(
        "access_control.main:app",
        host="0.0.0.0",
        port=9106,
        reload=settings.DEBUG
    )

if __name__ == "__main__":
    run_http()
