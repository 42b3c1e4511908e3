# Import all models once to ensure SQLAlchemy mapper registry is fully populated.
# This prevents late-binding issues for relationship("ClassName").

from .users.models import User  # noqa: F401
from .articles.models import Article, Comment, article_likes  # noqa: F401
from .images.models import ImageFile, ImageChunk  # noqa: F401
