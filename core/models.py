from django.db import models


class Student(models.Model):
    name = models.CharField(max_length=200)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=30)
    codeforces_handle = models.CharField(
        max_length=200,
        unique=True,
        help_text="Handle or profile URL, ex: tourist or https://codeforces.com/profile/tourist",
    )

    # Metricas derivadas (recalculadas a cada sync)
    current_rating = models.IntegerField(default=0)
    max_rating = models.IntegerField(default=0)
    last_sync = models.DateTimeField(null=True, blank=True)

    # Informational only: the global sync cadence lives in Setting.
    sync_hour = models.PositiveSmallIntegerField(default=2)
    reminder_enabled = models.BooleanField(default=True)
    reminder_sent_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Student"
        verbose_name_plural = "Students"

    def __str__(self):
        return f"{self.name} ({self.codeforces_handle})"

    def toggle_reminder(self, enabled=None):
        if isinstance(enabled, bool):
            self.reminder_enabled = enabled
        else:
            self.reminder_enabled = not self.reminder_enabled
        self.save(update_fields=['reminder_enabled', 'updated_at'])
        return self.reminder_enabled

    def reset_reminder_count(self):
        self.reminder_sent_count = 0
        self.save(update_fields=['reminder_sent_count', 'updated_at'])

    def set_sync_hour(self, hour):
        if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
            raise ValueError(f"Invalid sync hour: {hour!r}")
        self.sync_hour = hour
        self.save(update_fields=['sync_hour', 'updated_at'])


class ContestParticipation(models.Model):
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='contest_history')
    # Position in the upstream response; history is stored in the order Codeforces returns it.
    position = models.PositiveIntegerField(default=0)
    contest_id = models.IntegerField()
    name = models.CharField(max_length=300, blank=True)
    date = models.DateTimeField()
    rank = models.IntegerField(default=0)
    rating_before = models.IntegerField(default=0)
    rating_after = models.IntegerField(default=0)
    problems_unsolved = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['student', 'position']
        indexes = [
            models.Index(fields=['student', 'date'], name='core_contes_student_8c2f1e_idx'),
        ]
        verbose_name = "Contest participation"
        verbose_name_plural = "Contest history"

    def __str__(self):
        return f"{self.student.name} - {self.name} ({self.rating_before} -> {self.rating_after})"


class ProblemSolveEvent(models.Model):
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='problem_stats')
    position = models.PositiveIntegerField(default=0)
    problem_id = models.CharField(max_length=50, help_text="Ex: 1980A")
    solved_at = models.DateTimeField()
    rating = models.IntegerField(default=0)

    class Meta:
        ordering = ['student', 'position']
        indexes = [
            models.Index(fields=['student', 'solved_at'], name='core_proble_student_4d9a7b_idx'),
        ]
        verbose_name = "Problem solve"
        verbose_name_plural = "Problem stats"

    def __str__(self):
        return f"{self.student.name} - {self.problem_id} ({self.rating})"


class Setting(models.Model):
    SYNC_CRON = 'sync_cron'

    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=255)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Setting"
        verbose_name_plural = "Settings"

    def __str__(self):
        return f"{self.key} = {self.value}"
