"""
Purpose:
- Print the versions of the libraries fluxtag runs on and build the app once,
  so a broken install or an incompatible upgrade shows up before serving.
"""

import sys
import fastapi
import uvicorn
import httpx
import PIL
import pydantic
from pydantic_settings import BaseSettings

print("python", sys.version)
print("fastapi", fastapi.__version__)
print("uvicorn", uvicorn.__version__)
print("httpx", httpx.__version__)
print("pillow", PIL.__version__)
print("pydantic", pydantic.VERSION)
print("pydantic-settings", BaseSettings.__module__.split(".")[0])  # presence check
# app factory must import cleanly with the installed stack
from fluxtag.main import create_app
print("routes", len(create_app().routes))
print("OK")
