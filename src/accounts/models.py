from django.contrib.auth.models import (
    AbstractBaseUser,
    BaseUserManager,
    PermissionsMixin,
)
from django.db import models
from django.utils import timezone

from core.models import SoftDeleteQuerySet


class UserQuerySet(SoftDeleteQuerySet):
    def in_roles(self, *roles):
        return self.filter(role__in=roles)


class UserManager(BaseUserManager.from_queryset(UserQuerySet)):
    """Custom manager for the User model that uses email as the unique identifier."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("L'adresse e-mail est obligatoire.")
        email = self.normalize_email(email)
        extra_fields.setdefault("is_active", True)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", User.Role.ADMIN)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Le superutilisateur doit avoir is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Le superutilisateur doit avoir is_superuser=True.")

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Staff member of the sign workshop.

    Uses email as the unique identifier instead of a username. The role
    code decides which compensation scheme applies and how much of the
    company the user may look at through the API.
    """

    class Role(models.TextChoices):
        ADMIN = "ADMIN", "Administrateur"
        OWNER = "G", "Gerant"
        COMMERCIAL_DIRECTOR = "KD", "Directeur commercial"
        SALES_DIRECTOR = "DO", "Directeur des ventes"
        TEAM_LEAD = "ROP", "Chef d'equipe ventes"
        SALES_REP = "MOP", "Commercial"
        ACCOUNT_LEAD = "ROV", "Chef d'equipe suivi clients"
        ACCOUNT_REP = "MOV", "Charge de suivi clients"
        DESIGNER = "DIZ", "Designer"
        PRODUCTION = "PROD", "Production"

    email = models.EmailField(
        "adresse e-mail",
        unique=True,
        error_messages={
            "unique": "Un utilisateur avec cette adresse e-mail existe deja.",
        },
    )
    first_name = models.CharField("prenom", max_length=150)
    last_name = models.CharField("nom", max_length=150, blank=True, default="")
    role = models.CharField(
        "role",
        max_length=10,
        choices=Role.choices,
        default=Role.SALES_REP,
        db_index=True,
    )
    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.PROTECT,
        related_name="users",
        verbose_name="espace",
        null=True,
        blank=True,
    )
    group = models.ForeignKey(
        "workspaces.Group",
        on_delete=models.PROTECT,
        related_name="users",
        verbose_name="equipe",
        null=True,
        blank=True,
    )
    is_active = models.BooleanField("actif", default=True, db_index=True)
    is_staff = models.BooleanField("membre du personnel", default=False)
    date_joined = models.DateTimeField("date d'inscription", default=timezone.now)
    deleted_at = models.DateTimeField("licencie le", null=True, blank=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["first_name"]

    class Meta:
        verbose_name = "utilisateur"
        verbose_name_plural = "utilisateurs"
        ordering = ["id"]

    def __str__(self):
        return self.get_full_name() or self.email

    def get_full_name(self):
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name

    def get_short_name(self):
        return self.first_name

    # ------------------------------------------------------------------
    # Role helper properties
    # ------------------------------------------------------------------

    @property
    def is_fired(self):
        return self.deleted_at is not None

    @property
    def sees_all_workspaces(self):
        return self.is_superuser or self.role in (
            self.Role.ADMIN,
            self.Role.OWNER,
            self.Role.COMMERCIAL_DIRECTOR,
        )

    @property
    def sees_whole_workspace(self):
        return self.sees_all_workspaces or self.role == self.Role.SALES_DIRECTOR

    @property
    def sees_finance(self):
        return self.is_superuser or self.role in (self.Role.ADMIN, self.Role.OWNER)

    @property
    def role_display(self):
        return self.get_role_display()
