from flask_talisman import Talisman


def init_security(app):
    """
    Production/staging security headers. The API serves JSON only; the
    checkout widget runs on the frontend origin, so the CSP stays strict.
    """
    csp = {
        "default-src": ["'none'"],
        "connect-src": ["'self'", "https://api.razorpay.com"],
        "frame-src":   ["https://api.razorpay.com", "https://checkout.razorpay.com"],
        "frame-ancestors": ["'none'"],
        "base-uri":    ["'none'"],
        "form-action": ["'self'"],
    }

    Talisman(
        app,
        content_security_policy=csp,
        force_https=True,
        strict_transport_security=True,
        session_cookie_secure=True,
        frame_options="DENY",
        referrer_policy="strict-origin-when-cross-origin",
    )
