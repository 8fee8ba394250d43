"""Static HTML shown in the browser after the loopback redirect."""

from __future__ import annotations

__all__ = ["render_result_page"]

import html
from datetime import datetime
from string import Template

_SUCCESS_MESSAGE = (
    "The PingOne AIC MCP Server can now access PingOne Advanced Identity Cloud APIs "
    "with your permissions."
)
_FAILURE_MESSAGE = "An error occurred during authentication."

_PAGE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width,initial-scale=1" />
  <title>PingOne AIC MCP Server - $heading</title>
  <style>
    html, body { margin: 0; }
    body {
      display: flex;
      align-items: center;
      justify-content: center;
      min-height: 100vh;
      font-family: "Open Sans", system-ui, -apple-system, "Segoe UI", Roboto, Arial, sans-serif;
      background: #e8e9f0;
    }
    .container {
      width: 800px;
      max-width: 90%;
      min-height: 300px;
      margin: 2rem;
      padding: 32px;
      box-sizing: border-box;
      background: #ffffff;
      border: 1px solid #d9d8db;
      border-radius: 4px;
      text-align: center;
    }
    h1 { margin: 40px 0 20px 0; font-size: 28px; font-weight: 600; color: #111827; }
    .secondary-text { font-size: 0.9375rem; color: #6b7280; line-height: 1.6; }
    .error-details {
      margin: 20px auto 0 auto;
      padding: 16px;
      max-width: 600px;
      background: #fef2f2;
      border: 1px solid #fecaca;
      border-radius: 8px;
      color: #991b1b;
      text-align: left;
      word-wrap: break-word;
    }
    footer { position: fixed; bottom: 0; left: 0; right: 0; padding: 24px; text-align: center; }
  </style>
</head>
<body>
  <div class="container" role="main">
    <h1>$heading</h1>
    <p class="secondary-text">$message</p>
    $details
    <p class="secondary-text" id="closeMessage">$close_message</p>
  </div>
  <footer class="secondary-text">&copy; Copyright $year Ping Identity. All rights reserved.</footer>
  $script
</body>
</html>
"""
)

_AUTO_CLOSE_SCRIPT = """<script>
    (function () {
      var countdown = 3;
      var closeMessage = document.getElementById('closeMessage');
      var timer = setInterval(function () {
        countdown--;
        if (countdown > 0) {
          closeMessage.textContent = 'This window will close in ' + countdown + ' seconds...';
        } else {
          clearInterval(timer);
          window.close();
          closeMessage.textContent = 'You can close this window now.';
        }
      }, 1000);
    })();
  </script>"""


def render_result_page(success: bool, error_details: str | None = None) -> str:
    """Render the authorization result page.

    Args:
        success: Whether the redirect completed the authorization step.
        error_details: Failure detail to show (HTML-escaped). Ignored on success.

    Returns:
        Complete HTML document.
    """
    details = ""
    if not success and error_details:
        details = (
            '<div class="error-details secondary-text">'
            f"<strong>Error:</strong> {html.escape(error_details)}</div>"
        )

    return _PAGE.substitute(
        heading="Authorization Successful" if success else "Authorization Failed",
        message=_SUCCESS_MESSAGE if success else _FAILURE_MESSAGE,
        details=details,
        close_message="This window will close in 3 seconds..." if success else "You can close this window.",
        year=datetime.now().year,
        script=_AUTO_CLOSE_SCRIPT if success else "",
    )
