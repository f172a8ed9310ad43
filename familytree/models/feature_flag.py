from sqlalchemy import Column, String, Boolean, DateTime
from datetime import datetime
from familytree.database import Base


# Mapped attribute -> JSON key
FEATURE_KEYS = {
    # Core pages
    "family_tree": "familyTree",
    "registry_flag": "registry",
    "journals": "journals",
    "gallery": "gallery",
    "gatherings": "gatherings",
    "dashboard": "dashboard",
    "search": "search",
    "branches": "branches",
    # Data management
    "quick_add": "quickAdd",
    "import_data": "importData",
    "export_data": "exportData",
    "tree_editor": "treeEditor",
    "duplicates": "duplicates",
    "change_history": "changeHistory",
    # User features
    "registration": "registration",
    "invitations": "invitations",
    "access_requests": "accessRequests",
    "profiles": "profiles",
    # Special features
    "breastfeeding": "breastfeeding",
    "branch_entries": "branchEntries",
    "onboarding": "onboarding",
    # Admin features
    "image_moderation": "imageModeration",
    "broadcasts": "broadcasts",
    "reports": "reports",
    "audit": "audit",
    "api_services": "apiServices",
}


class FeatureFlag(Base):
    """
    Single row (id="default") holding every feature toggle.
    """
    __tablename__ = "feature_flags"

    id = Column(String, primary_key=True, default="default")

    # Core pages
    family_tree = Column(Boolean, nullable=False, default=True)
    # "registry" is reserved on declarative classes
    registry_flag = Column("registry", Boolean, nullable=False, default=True)
    journals = Column(Boolean, nullable=False, default=True)
    gallery = Column(Boolean, nullable=False, default=True)
    gatherings = Column(Boolean, nullable=False, default=True)
    dashboard = Column(Boolean, nullable=False, default=True)
    search = Column(Boolean, nullable=False, default=True)
    branches = Column(Boolean, nullable=False, default=True)

    # Data management
    quick_add = Column(Boolean, nullable=False, default=True)
    import_data = Column(Boolean, nullable=False, default=True)
    export_data = Column(Boolean, nullable=False, default=True)
    tree_editor = Column(Boolean, nullable=False, default=True)
    duplicates = Column(Boolean, nullable=False, default=True)
    change_history = Column(Boolean, nullable=False, default=True)

    # User features
    registration = Column(Boolean, nullable=False, default=True)
    invitations = Column(Boolean, nullable=False, default=True)
    access_requests = Column(Boolean, nullable=False, default=True)
    profiles = Column(Boolean, nullable=False, default=True)

    # Special features
    breastfeeding = Column(Boolean, nullable=False, default=True)
    branch_entries = Column(Boolean, nullable=False, default=True)
    onboarding = Column(Boolean, nullable=False, default=True)

    # Admin features
    image_moderation = Column(Boolean, nullable=False, default=True)
    broadcasts = Column(Boolean, nullable=False, default=True)
    reports = Column(Boolean, nullable=False, default=True)
    audit = Column(Boolean, nullable=False, default=True)
    api_services = Column(Boolean, nullable=False, default=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = Column(String, nullable=True)
