"""
Tool Server entry point

Exposes the calculate-tax and get-weather tools over HTTP.

Run:
  python main_http.py
or
  uvicorn main_http:app --port 3000

Then POST tool calls to http://127.0.0.1:3000/mcp, e.g.
  {"toolName": "calculate-tax", "params": {"amount": 100, "jurisdiction": "Texas"}, "correlationId": 1}
Add "stream": true (or send Accept: text/event-stream) to receive the answer as SSE.
"""
from dotenv import load_dotenv

from tool_server.base import ServerSettings
from tool_server.http_app import create_mcp_http_app

# Load environment variables
load_dotenv()

settings = ServerSettings.from_env()
app = create_mcp_http_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
