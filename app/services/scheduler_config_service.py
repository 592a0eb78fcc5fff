from flask import current_app
from app.extensions import db
from app.models.setting import SystemSetting


MAX_INTERVAL_MINUTES = 24 * 60


def default_recalculation_schedule():
    config = current_app.config
    return {
        'enabled': True,
        'interval_minutes': int(config.get('RECALC_INTERVAL_MINUTES', 5)),
        'batch_size': int(config.get('RECALC_BATCH_SIZE', 100)),
    }


class SchedulerConfigService:
    RECALCULATION_KEY = 'recalculation_schedule'

    def get_recalculation_schedule(self):
        defaults = default_recalculation_schedule()
        raw = SystemSetting.get_value(self.RECALCULATION_KEY, defaults)
        return self._normalize_recalculation_schedule(raw, strict=False)

    def update_recalculation_schedule(self, updates):
        current = self.get_recalculation_schedule()
        merged = {**current, **updates}
        normalized = self._normalize_recalculation_schedule(merged, strict=True)
        SystemSetting.set_value(self.RECALCULATION_KEY, normalized)
        db.session.commit()
        return normalized

    def _normalize_recalculation_schedule(self, payload, strict=False):
        data = payload if isinstance(payload, dict) else {}
        normalized = default_recalculation_schedule()
        max_batch = int(current_app.config.get('RECALC_MAX_BATCH_SIZE', 500))

        enabled = data.get('enabled', normalized['enabled'])
        if isinstance(enabled, bool):
            normalized['enabled'] = enabled
        elif strict:
            raise ValueError('"enabled" must be a boolean')

        for field, max_value in (('interval_minutes', MAX_INTERVAL_MINUTES), ('batch_size', max_batch)):
            raw = data.get(field, normalized[field])
            if isinstance(raw, bool):
                if strict:
                    raise ValueError(f'"{field}" must be an integer')
                continue
            try:
                value = int(raw)
            except (TypeError, ValueError):
                if strict:
                    raise ValueError(f'"{field}" must be an integer')
                continue

            if value < 1 or value > max_value:
                if strict:
                    raise ValueError(f'"{field}" must be between 1 and {max_value}')
                continue

            normalized[field] = value

        return normalized
