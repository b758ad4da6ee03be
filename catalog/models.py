# catalog/models.py
import re

from django.db import models
from django.utils.text import slugify


def unique_slug(instance, value, field="slug"):
    """Slugify value and append -1, -2 ... until no other row uses it"""
    clean = re.sub(r'[^\w\s-]', '', value)
    clean = re.sub(r'\s+', ' ', clean).strip()
    base_slug = slugify(clean) or "item"

    slug = base_slug
    counter = 1
    queryset = instance.__class__.objects.all()
    if instance.pk:
        queryset = queryset.exclude(pk=instance.pk)
    while queryset.filter(**{field: slug}).exists():
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug


class Category(models.Model):
    GENDER_CHOICES = [
        ("men", "Men"),
        ("women", "Women"),
        ("unisex", "Unisex"),
    ]

    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, default="unisex", db_index=True)
    description = models.TextField(blank=True, null=True)
    image_url = models.URLField(blank=True, null=True)
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["display_order", "name"]
        verbose_name_plural = "categories"

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(self, self.name)
        super().save(*args, **kwargs)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "gender": self.gender,
            "description": self.description,
            "image_url": self.image_url,
            "display_order": self.display_order,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self):
        return f"{self.name} ({self.get_gender_display()})"


def default_sizes():
    return ["S", "M", "L", "XL"]


def default_colors():
    return ["Black"]


class Product(models.Model):
    GENDER_CHOICES = Category.GENDER_CHOICES

    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name="products")
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=220, unique=True, blank=True)
    sku = models.CharField(max_length=64, blank=True, null=True, unique=True)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, db_index=True)
    sizes = models.JSONField(default=default_sizes, blank=True)
    colors = models.JSONField(default=default_colors, blank=True)
    stock = models.IntegerField(default=0, db_index=True)

    # Carrier rate calculation (kg / cm)
    weight = models.DecimalField(max_digits=6, decimal_places=3, blank=True, null=True)
    length = models.DecimalField(max_digits=6, decimal_places=1, blank=True, null=True)
    breadth = models.DecimalField(max_digits=6, decimal_places=1, blank=True, null=True)
    height = models.DecimalField(max_digits=6, decimal_places=1, blank=True, null=True)

    has_size_chart = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["gender", "category"], name="product_gender_category_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(self, self.name)
        super().save(*args, **kwargs)

    @property
    def primary_image(self):
        images = list(self.images.all())
        for image in images:
            if image.is_primary:
                return image
        return images[0] if images else None

    @property
    def image_url(self):
        """Primary image URL for listings and order snapshots"""
        image = self.primary_image
        return image.url if image else ""

    def to_dict(self, with_details=False):
        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "sku": self.sku,
            "description": self.description,
            "price": float(self.price),
            "category": self.category.slug if self.category_id else None,
            "category_id": self.category_id,
            "gender": self.gender,
            "sizes": self.sizes,
            "colors": self.colors,
            "stock": self.stock,
            "weight": float(self.weight) if self.weight is not None else None,
            "length": float(self.length) if self.length is not None else None,
            "breadth": float(self.breadth) if self.breadth is not None else None,
            "height": float(self.height) if self.height is not None else None,
            "has_size_chart": self.has_size_chart,
            "is_active": self.is_active,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if with_details:
            data["images"] = [image.to_dict() for image in self.images.all()]
            data["size_chart"] = (
                [row.to_dict() for row in self.size_chart.all()] if self.has_size_chart else []
            )
        return data

    def __str__(self):
        return self.name


class ProductImage(models.Model):
    product = models.ForeignKey(Product, related_name="images", on_delete=models.CASCADE)
    image = models.ImageField(upload_to="products/", blank=True, null=True)
    image_url = models.URLField(blank=True, null=True, help_text="Externally hosted (CDN) image")
    cdn_public_id = models.CharField(max_length=255, blank=True, null=True)
    alt_text = models.CharField(max_length=200, blank=True, default="")
    display_order = models.PositiveIntegerField(default=0)
    is_primary = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["display_order", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["product"],
                condition=models.Q(is_primary=True),
                name="one_primary_image_per_product",
            ),
        ]

    @property
    def url(self):
        if self.image:
            return self.image.url
        return self.image_url or ""

    def make_primary(self):
        ProductImage.objects.filter(product_id=self.product_id, is_primary=True).exclude(pk=self.pk).update(
            is_primary=False
        )
        self.is_primary = True
        self.save(update_fields=["is_primary"])

    def to_dict(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "image_url": self.url,
            "cdn_public_id": self.cdn_public_id,
            "alt_text": self.alt_text,
            "display_order": self.display_order,
            "is_primary": self.is_primary,
        }

    def __str__(self):
        return f"Image #{self.id} for {self.product}"


class SizeChart(models.Model):
    product = models.ForeignKey(Product, related_name="size_chart", on_delete=models.CASCADE)
    size = models.CharField(max_length=10)
    chest = models.DecimalField(max_digits=5, decimal_places=1, blank=True, null=True)
    length = models.DecimalField(max_digits=5, decimal_places=1, blank=True, null=True)
    shoulder = models.DecimalField(max_digits=5, decimal_places=1, blank=True, null=True)
    sleeve = models.DecimalField(max_digits=5, decimal_places=1, blank=True, null=True)

    class Meta:
        ordering = ["size"]
        constraints = [
            models.UniqueConstraint(fields=["product", "size"], name="unique_size_per_product"),
        ]

    def to_dict(self):
        def _num(value):
            return float(value) if value is not None else None

        return {
            "size": self.size,
            "chest": _num(self.chest),
            "length": _num(self.length),
            "shoulder": _num(self.shoulder),
            "sleeve": _num(self.sleeve),
        }

    def __str__(self):
        return f"{self.product} - {self.size}"
