from django.contrib import admin

from .models import Product, CartItem


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'producer', 'category', 'price_per_unit', 'quantity', 'nft_status', 'hedera_token_id', 'created_at']
    list_filter = ['category', 'nft_status', 'country_of_origin']
    search_fields = ['name', 'description', 'hs_code', 'producer__wallet_address']
    readonly_fields = ['hedera_token_id', 'hedera_serials', 'nft_error', 'created_at', 'updated_at']


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ['user', 'product', 'quantity', 'updated_at']
    search_fields = ['user__wallet_address', 'product__name']
