import uvicorn

from cwv_auditor.main import app

if __name__ == "__main__":
    uvicorn.run("cwv_auditor.main:app", host="0.0.0.0", port=8000, reload=True)
