"""HTML pages rendered by the link-style invitation accept endpoint."""

from __future__ import annotations

from html import escape

_STYLE = """
        body { font-family: Arial, sans-serif; background-color: #f5f5f5; margin: 0; padding: 40px; }
        .container { max-width: 500px; margin: 0 auto; background: white; border-radius: 10px; padding: 40px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); text-align: center; }
        .icon { font-size: 60px; }
        .ok { color: #4CAF50; }
        .warn { color: #FF9800; }
        .error { color: #f44336; }
        h1 { color: #333; margin-top: 20px; }
        p { color: #666; font-size: 16px; }
        .org-name { color: #4A90D9; font-weight: bold; }
        .role { background: #e3f2fd; padding: 5px 15px; border-radius: 20px; display: inline-block; margin-top: 10px; }
        .token-box { background: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0; word-break: break-all; font-family: monospace; font-size: 12px; }
        code { background: #e8e8e8; padding: 2px 6px; border-radius: 3px; }
"""


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{escape(title)}</title>
    <style>{_STYLE}    </style>
</head>
<body>
    <div class="container">
{body}
    </div>
</body>
</html>
"""


def success_page(organization_name: str, role: str) -> str:
    return _page(
        "Invitation Accepted",
        f"""        <div class="icon ok">&#10003;</div>
        <h1>Welcome!</h1>
        <p>You have successfully joined <span class="org-name">{escape(organization_name)}</span></p>
        <p class="role">Role: {escape(role)}</p>
        <p style="margin-top: 30px; font-size: 14px; color: #888;">You can now close this page.</p>""",
    )


def login_required_page(token: str) -> str:
    return _page(
        "Login Required",
        f"""        <div class="icon warn">&#128272;</div>
        <h1>Login Required</h1>
        <p>To accept this invitation, you need to be logged in.</p>
        <p style="font-size: 14px; color: #888;">Please log in via the API and then call:</p>
        <p><code>POST /api/memberships/invitations/accept</code></p>
        <p style="font-size: 14px;">With your token:</p>
        <div class="token-box">{escape(token)}</div>""",
    )


def error_page(title: str, message: str) -> str:
    return _page(
        title,
        f"""        <div class="icon error">&#10007;</div>
        <h1>{escape(title)}</h1>
        <p>{escape(message)}</p>""",
    )
