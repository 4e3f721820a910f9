# Import every model so string-based relationships resolve on first use
from shajara.models import member, tree, user, invite, merge  # noqa: F401
