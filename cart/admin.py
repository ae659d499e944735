"""Cart admin: browse carts by owner type, clear them, and hand a guest
cart over to a customer account.
"""

from common.exceptions import CommerceError
from django import forms
from django.contrib import admin, messages
from django.contrib.admin.helpers import ActionForm
from django.contrib.auth import get_user_model

from .models import Cart, CartItem
from .services import clear_cart, merge_guest_cart


class CartMergeActionForm(ActionForm):
    """Extra input so support can merge a guest cart into a user."""

    user = forms.ModelChoiceField(
        queryset=get_user_model().objects.all(),
        required=False,
        label="Target user for merge (guest carts only)",
        help_text="Select when using 'Merge guest cart into user'.",
    )


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    fields = ("product", "variant", "variant_value", "quantity", "created_at", "updated_at")
    readonly_fields = ("created_at", "updated_at")
    raw_id_fields = ("product", "variant")


class OwnerTypeFilter(admin.SimpleListFilter):
    title = "owner type"
    parameter_name = "owner_type"

    def lookups(self, request, model_admin):
        return (
            ("user", "User carts"),
            ("guest", "Guest carts"),
        )

    def queryset(self, request, queryset):
        value = self.value()
        if value == "user":
            return queryset.filter(user__isnull=False)
        if value == "guest":
            return queryset.filter(user__isnull=True)
        return queryset


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "session_id", "updated_at", "created_at")
    list_filter = (OwnerTypeFilter,)
    search_fields = ("session_id", "user__username", "user__email")
    ordering = ("-updated_at",)
    readonly_fields = ("created_at", "updated_at")
    inlines = [CartItemInline]
    raw_id_fields = ("user",)
    list_select_related = ("user",)
    action_form = CartMergeActionForm
    actions = ["action_clear_cart", "action_merge_guest_cart_to_user"]

    @admin.action(description="Clear cart (delete items, keep cart)")
    def action_clear_cart(self, request, queryset):
        cleared = 0
        for cart in queryset:
            clear_cart(cart=cart)
            cleared += 1
        messages.success(request, f"Cleared {cleared} cart(s).")

    @admin.action(description="Merge guest cart into selected user")
    def action_merge_guest_cart_to_user(self, request, queryset):
        User = get_user_model()
        user_id = request.POST.get("user")
        if not user_id:
            messages.error(request, "Please select a target user in the action form.")
            return
        try:
            target_user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            messages.error(request, "Selected user not found.")
            return

        merged = skipped = failed = 0
        for cart in queryset:
            if cart.user_id:
                skipped += 1
                continue
            try:
                merge_guest_cart(session_id=cart.session_id or "", user=target_user)
                merged += 1
            except CommerceError:
                failed += 1
        if merged:
            messages.success(request, f"Merged {merged} guest cart(s) into {target_user.email or target_user.username}.")
        if skipped:
            messages.info(request, f"Skipped {skipped} user-bound cart(s); merge applies to guest carts only.")
        if failed:
            messages.error(request, f"Failed to merge {failed} cart(s).")


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("id", "cart", "product", "variant", "quantity", "updated_at")
    search_fields = ("variant__sku", "product__title", "cart__user__email", "cart__session_id")
    ordering = ("id",)
    readonly_fields = ("created_at", "updated_at")
    raw_id_fields = ("cart", "product", "variant")


# EOF
