from django.contrib import admin
from .models import Category, Product, ProductImage, SizeChart


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0
    fields = ('image', 'image_url', 'cdn_public_id', 'alt_text', 'display_order', 'is_primary')


class SizeChartInline(admin.TabularInline):
    model = SizeChart
    extra = 0


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'gender', 'display_order', 'is_active', 'created_at')
    list_filter = ('gender', 'is_active')
    search_fields = ('name', 'slug')
    ordering = ('display_order', 'name')
    readonly_fields = ('created_at',)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'category', 'gender', 'price', 'stock', 'is_active', 'created_at')
    list_filter = ('gender', 'category', 'is_active', 'has_size_chart')
    search_fields = ('name', 'slug', 'sku')
    ordering = ('-created_at',)
    inlines = [ProductImageInline, SizeChartInline]

    fieldsets = (
        ('Product Details', {
            'fields': ('name', 'slug', 'sku', 'category', 'gender', 'description')
        }),
        ('Pricing & Stock', {
            'fields': ('price', 'stock', 'is_active')
        }),
        ('Variants', {
            'fields': ('sizes', 'colors', 'has_size_chart')
        }),
        ('Package (for shipping)', {
            'fields': ('weight', 'length', 'breadth', 'height'),
            'classes': ('collapse',)
        }),
        ('Date Information', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    readonly_fields = ('created_at', 'updated_at')

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('category')
