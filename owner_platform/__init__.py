"""Owner marketplace backend.

Authors and bookstores ("owners") sign up, wait for approval, then manage their
book listings (ebooks / audiobooks). The public catalog only shows listings of
approved owners.

Core concepts:
- Owner approval status (pending/approved/rejected) gates write access and public visibility.
- A listing belongs to exactly one owner for its whole life.
- Sessions are stateless signed tokens; the owner is re-read on every request.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
