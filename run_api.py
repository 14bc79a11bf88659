#!/usr/bin/env python
"""
Run the booking API locally.

Run: python run_api.py

Then open browser: http://localhost:8000/docs
"""
import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "simbook.api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info")
    )
