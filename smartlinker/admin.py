from django.contrib import admin

from .models import AppliedLink, Category, Document, DocumentSections, LinkSuggestion


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    search_fields = ('name',)


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ('title', 'slug', 'kind', 'status', 'modified_at')
    list_filter = ('status', 'kind', 'categories')
    search_fields = ('title', 'slug', 'content')
    prepopulated_fields = {'slug': ('title',)}
    filter_horizontal = ('categories',)


@admin.register(DocumentSections)
class DocumentSectionsAdmin(admin.ModelAdmin):
    list_display = ('document', 'updated_at')
    readonly_fields = ('sections', 'updated_at')


@admin.register(LinkSuggestion)
class LinkSuggestionAdmin(admin.ModelAdmin):
    list_display = ('document', 'section_index', 'target', 'anchor_text', 'relevance_score')
    list_filter = ('document',)
    search_fields = ('anchor_text', 'target_title')


@admin.register(AppliedLink)
class AppliedLinkAdmin(admin.ModelAdmin):
    list_display = ('document', 'target_document_id', 'anchor_text', 'applied_at')
    list_filter = ('document',)
    search_fields = ('anchor_text',)
