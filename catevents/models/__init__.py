# catevents — Database Models
# Import all models here for SQLAlchemy discovery

from catevents.models.stored_document import StoredDocument  # noqa
