from django import forms
from django.contrib import admin, messages
from django.db import transaction

from .models import ContestParticipation, ProblemSolveEvent, Setting, Student
from .services.progress import contests_since, hardest_problem, problems_since
from .services.schedule import InvalidCadence, build_trigger
from .tasks import sync_student

admin.site.site_header = "Student Progress Manager"
admin.site.site_title = "Student Progress Manager"
admin.site.index_title = "Administration"


class SuperuserOnlyAdmin(admin.ModelAdmin):
    """
    Hides technical models from regular staff.
    """

    def has_module_permission(self, request):
        return bool(request.user and request.user.is_superuser)

    def has_view_permission(self, request, obj=None):
        return bool(request.user and request.user.is_superuser)

    def has_add_permission(self, request):
        return bool(request.user and request.user.is_superuser)

    def has_change_permission(self, request, obj=None):
        return bool(request.user and request.user.is_superuser)

    def has_delete_permission(self, request, obj=None):
        return bool(request.user and request.user.is_superuser)


class ContestParticipationInline(admin.TabularInline):
    model = ContestParticipation
    extra = 0
    can_delete = False
    readonly_fields = (
        'contest_id', 'name', 'date', 'rank', 'rating_before', 'rating_after', 'problems_unsolved',
    )
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


class ProblemSolveEventInline(admin.TabularInline):
    model = ProblemSolveEvent
    extra = 0
    can_delete = False
    readonly_fields = ('problem_id', 'solved_at', 'rating')
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = (
        'name',
        'email',
        'codeforces_handle',
        'current_rating',
        'max_rating',
        'last_sync',
        'reminder_enabled',
        'reminder_sent_count',
    )
    list_filter = ('reminder_enabled',)
    search_fields = ('name', 'email', 'codeforces_handle')
    readonly_fields = (
        'current_rating',
        'max_rating',
        'last_sync',
        'reminder_sent_count',
        'contests_last_year',
        'solved_last_30_days',
        'hardest_last_90_days',
    )
    inlines = [ContestParticipationInline, ProblemSolveEventInline]
    actions = ['queue_sync', 'enable_reminders', 'disable_reminders', 'reset_reminder_count']

    @admin.display(description="Contests (365d)")
    def contests_last_year(self, obj: Student):
        return contests_since(obj, days=365).count() if obj.pk else 0

    @admin.display(description="Solved (30d)")
    def solved_last_30_days(self, obj: Student):
        return problems_since(obj, days=30).count() if obj.pk else 0

    @admin.display(description="Hardest solved (90d)")
    def hardest_last_90_days(self, obj: Student):
        problem = hardest_problem(obj, days=90) if obj.pk else None
        if problem is None:
            return "-"
        return f"{problem.problem_id} ({problem.rating})"

    def save_model(self, request, obj, form, change):
        handle_changed = change and 'codeforces_handle' in form.changed_data
        super().save_model(request, obj, form, change)
        if not change or handle_changed:
            transaction.on_commit(lambda: sync_student.delay(obj.id))

    def queue_sync(self, request, queryset):
        ids = list(queryset.values_list('id', flat=True))
        for student_id in ids:
            sync_student.delay(student_id)
        self.message_user(request, f"Sync queued for {len(ids)} student(s).", level=messages.SUCCESS)

    def enable_reminders(self, request, queryset):
        updated = sum(1 for student in queryset if student.toggle_reminder(enabled=True))
        self.message_user(request, f"Reminders enabled for {updated} student(s).", level=messages.SUCCESS)

    def disable_reminders(self, request, queryset):
        updated = sum(1 for student in queryset if not student.toggle_reminder(enabled=False))
        self.message_user(request, f"Reminders disabled for {updated} student(s).", level=messages.SUCCESS)

    def reset_reminder_count(self, request, queryset):
        updated = 0
        for student in queryset:
            student.reset_reminder_count()
            updated += 1
        self.message_user(request, f"Reminder count reset for {updated} student(s).", level=messages.SUCCESS)

    queue_sync.short_description = "Sync now from Codeforces"
    enable_reminders.short_description = "Enable inactivity reminders"
    disable_reminders.short_description = "Disable inactivity reminders"
    reset_reminder_count.short_description = "Reset reminder count"


class SettingForm(forms.ModelForm):
    class Meta:
        model = Setting
        fields = ('key', 'value')

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('key') == Setting.SYNC_CRON:
            value = (cleaned.get('value') or '').strip()
            try:
                build_trigger(value)
            except InvalidCadence as exc:
                self.add_error('value', str(exc))
            cleaned['value'] = value
        return cleaned


@admin.register(Setting)
class SettingAdmin(SuperuserOnlyAdmin):
    form = SettingForm
    list_display = ('key', 'value', 'updated_at')
    search_fields = ('key',)
