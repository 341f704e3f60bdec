import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def money():
    return models.DecimalField(decimal_places=2, default=0, max_digits=18)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Store",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "stores",
                "ordering": ("name",),
            },
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=50)),
                ("name", models.CharField(max_length=200)),
                ("account_type", models.CharField(choices=[("asset", "Asset"), ("liability", "Liability"), ("equity", "Equity"), ("revenue", "Revenue"), ("expense", "Expense")], max_length=10)),
                ("level", models.PositiveSmallIntegerField(default=1)),
                ("is_active", models.BooleanField(default=True)),
                ("allows_entries", models.BooleanField(default=True)),
                ("description", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="ledger_core.account")),
                ("store", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="accounts", to="ledger_core.store")),
            ],
            options={
                "db_table": "chart_of_accounts",
                "ordering": ("store", "code"),
                "indexes": [
                    models.Index(fields=["store", "account_type"], name="coa_store_type_idx"),
                    models.Index(fields=["store", "parent"], name="coa_store_parent_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("store", "code"), name="uq_store_account_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=32)),
                ("date", models.DateField()),
                ("entry_type", models.CharField(choices=[("manual", "Manual"), ("sale", "Sale"), ("purchase", "Purchase"), ("fiscal_invoice", "Fiscal invoice"), ("adjustment", "Adjustment"), ("transfer", "Transfer"), ("closing", "Period closing"), ("year_end", "Year-end transfer")], default="manual", max_length=20)),
                ("source_type", models.CharField(blank=True, max_length=50, null=True)),
                ("source_id", models.CharField(blank=True, max_length=64, null=True)),
                ("description", models.TextField(blank=True, default="")),
                ("reference", models.CharField(blank=True, max_length=200, null=True)),
                ("total_debit_bs", money()),
                ("total_credit_bs", money()),
                ("total_debit_usd", money()),
                ("total_credit_usd", money()),
                ("exchange_rate", models.DecimalField(blank=True, decimal_places=6, max_digits=18, null=True)),
                ("currency", models.CharField(choices=[("BS", "Bolívares"), ("USD", "US Dollar"), ("MIXED", "Mixed")], default="BS", max_length=5)),
                ("status", models.CharField(choices=[("draft", "Draft"), ("posted", "Posted"), ("cancelled", "Cancelled")], default="draft", max_length=10)),
                ("is_auto_generated", models.BooleanField(default=False)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("metadata", models.JSONField(blank=True, null=True)),
                ("cancelled_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("posted_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("store", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="journal_entries", to="ledger_core.store")),
            ],
            options={
                "db_table": "journal_entries",
                "ordering": ("store", "date", "number"),
                "indexes": [
                    models.Index(fields=["store", "date"], name="je_store_date_idx"),
                    models.Index(fields=["store", "status"], name="je_store_status_idx"),
                    models.Index(fields=["store", "source_type", "source_id"], name="je_store_source_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("store", "number"), name="uq_store_entry_number"),
                    models.UniqueConstraint(
                        condition=models.Q(("is_auto_generated", True), models.Q(("status", "cancelled"), _negated=True)),
                        fields=("store", "source_type", "source_id"),
                        name="uq_store_auto_entry_source",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntryLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_number", models.PositiveIntegerField()),
                ("debit_amount_bs", money()),
                ("credit_amount_bs", money()),
                ("debit_amount_usd", money()),
                ("credit_amount_usd", money()),
                ("description", models.CharField(blank=True, default="", max_length=500)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="journal_lines", to="ledger_core.account")),
                ("entry", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.journalentry")),
            ],
            options={
                "db_table": "journal_entry_lines",
                "ordering": ("entry", "line_number"),
                "indexes": [
                    models.Index(fields=["account"], name="jel_account_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("entry", "line_number"), name="uq_entry_line_number"),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("debit_amount_bs__gte", 0),
                            ("credit_amount_bs__gte", 0),
                            ("debit_amount_usd__gte", 0),
                            ("credit_amount_usd__gte", 0),
                        ),
                        name="jel_non_negative_amounts",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AccountBalance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("period_start", models.DateField()),
                ("period_end", models.DateField()),
                ("opening_debit_bs", money()),
                ("opening_credit_bs", money()),
                ("opening_debit_usd", money()),
                ("opening_credit_usd", money()),
                ("period_debit_bs", money()),
                ("period_credit_bs", money()),
                ("period_debit_usd", money()),
                ("period_credit_usd", money()),
                ("closing_debit_bs", money()),
                ("closing_credit_bs", money()),
                ("closing_debit_usd", money()),
                ("closing_credit_usd", money()),
                ("last_calculated_at", models.DateTimeField(blank=True, null=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="balances", to="ledger_core.account")),
                ("store", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="account_balances", to="ledger_core.store")),
            ],
            options={
                "db_table": "account_balances",
                "ordering": ("store", "account", "period_start"),
                "constraints": [
                    models.UniqueConstraint(fields=("store", "account", "period_start"), name="uq_account_balance_bucket"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AccountingPeriod",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("period_code", models.CharField(max_length=7)),
                ("period_start", models.DateField()),
                ("period_end", models.DateField()),
                ("status", models.CharField(choices=[("open", "Open"), ("closed", "Closed"), ("locked", "Locked")], default="open", max_length=10)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("closing_note", models.TextField(blank=True, default="")),
                ("closed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("closing_entry", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="ledger_core.journalentry")),
                ("store", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="periods", to="ledger_core.store")),
            ],
            options={
                "db_table": "accounting_periods",
                "ordering": ("store", "period_start"),
                "indexes": [
                    models.Index(fields=["store", "period_start", "period_end"], name="ap_store_range_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("store", "period_code"), name="uq_store_period_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="EntrySequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("period_key", models.CharField(max_length=6)),
                ("next_value", models.PositiveIntegerField(default=1)),
                ("store", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="entry_sequences", to="ledger_core.store")),
            ],
            options={
                "db_table": "entry_sequences",
                "constraints": [
                    models.UniqueConstraint(fields=("store", "period_key"), name="uq_entry_sequence_key"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AccountMapping",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_type", models.CharField(choices=[("cash_asset", "Cash / bank asset"), ("accounts_receivable", "Accounts receivable"), ("accounts_payable", "Accounts payable"), ("sale_revenue", "Sale revenue"), ("sale_cost", "Cost of sales"), ("sale_tax", "Output VAT"), ("purchase_tax", "Input VAT"), ("inventory_asset", "Inventory"), ("purchase_expense", "Purchases"), ("income", "Other income"), ("expense", "General expense"), ("adjustment", "Adjustments"), ("transfer", "Transfers"), ("fx_gain_realized", "Realized FX gain"), ("fx_loss_realized", "Realized FX loss"), ("fx_gain_unrealized", "Unrealized FX gain"), ("fx_loss_unrealized", "Unrealized FX loss")], max_length=30)),
                ("is_default", models.BooleanField(default=True)),
                ("conditions", models.JSONField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="mappings", to="ledger_core.account")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("store", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="account_mappings", to="ledger_core.store")),
            ],
            options={
                "db_table": "account_mappings",
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True), ("is_default", True)),
                        fields=("store", "transaction_type"),
                        name="uq_store_default_mapping",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("store", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="ledger_core.store")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "audit_logs",
                "indexes": [
                    models.Index(fields=["store", "user"], name="audit_store_user_idx"),
                    models.Index(fields=["store", "created_at"], name="audit_store_created_idx"),
                ],
            },
        ),
    ]
