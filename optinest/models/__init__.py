# Import all models so they are available from one place
from optinest.models.post import Post, PostBase, PostRecord, PostStatus
from optinest.models.author import Author
from optinest.models.media import MediaAsset, MediaAssetRecord, MediaKind
from optinest.models.newsletter import NewsletterSubscriber
from optinest.models.analytics import AnalyticsSummary, PageViewEvent
from optinest.models.admin_user import AdminRole, AdminSession, AdminUser, LoginRateLimit, StoredAdminUser
from optinest.models.cms import CmsContent
