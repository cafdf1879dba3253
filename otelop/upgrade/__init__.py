"""Step-by-step upgrades of collector instances from older versions up to the latest known one."""