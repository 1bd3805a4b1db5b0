#!/usr/bin/env python3
"""
Run script for the EstateHub Authorization API.
This script launches the FastAPI server with all routers mounted.
"""
import os
import sys
import traceback
import uvicorn

if __name__ == "__main__":
    try:
        port = int(os.getenv("PORT", 8000))
        print("Starting EstateHub Authorization API server...")
        print(f"Access the API at http://localhost:{port}")
        print(f"API documentation at http://localhost:{port}/docs")

        # Run the server
        uvicorn.run(
            "estatehub.main:app",
            host="0.0.0.0",
            port=port,
            reload=os.getenv("ENVIRONMENT", "production").lower() == "development",
            log_level="info"
        )
    except Exception as e:
        print(f"Error starting server: {e}")
        traceback.print_exc()
        sys.exit(1)
