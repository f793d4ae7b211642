"""
Auto-submitting HTML redirect form for a signed gateway request.
"""

from html import escape

from vinti4net.schemas.responses import PreparedRequest

_FORM_TEMPLATE = """<html>
    <head><title>Vinti4Net Payment</title></head>
    <body onload="document.forms[0].submit()">
        <form method="post" action="{action}">
{inputs}
        </form>
        <p>Processing...</p>
    </body>
</html>"""


def render_hidden_inputs(fields) -> str:
    lines = []
    for name, value in fields.items():
        # phone and acctInfo records only travel inside purchaseRequest
        if isinstance(value, (dict, list)):
            continue
        text = "" if value is None else str(value)
        lines.append(
            f'            <input type="hidden" name="{escape(str(name))}" value="{escape(text)}">'
        )
    return "\n".join(lines)


def render_payment_form(prepared: PreparedRequest) -> str:
    """HTML page that posts `prepared.fields` to `prepared.post_url` on load."""
    return _FORM_TEMPLATE.format(
        action=escape(prepared.post_url),
        inputs=render_hidden_inputs(prepared.fields),
    )
