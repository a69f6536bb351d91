# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import re

# sdXN (SCSI), xvdXN (Xen virtual disks) and device-mapper nodes
PARTITION_REGEX = re.compile(r"^(?:(?:s|xv)d[a-z]+\d*|dm-\d+)$")

DEV_DIR = "/dev"
DEV_MAPPER_DIR = "/dev/mapper"
DISK_BY_LABEL_DIR = "/dev/disk/by-label"
DISKSTATS_PATH = "/proc/diskstats"
MOUNTINFO_PATH = "/proc/self/mountinfo"

# number of counters in a /proc/diskstats line which are reported
DISKSTATS_NUM_FIELDS = 11
# the device name is the third column, the counters follow it
DISKSTATS_DEVICE_NAME_IDX = 2

LABEL_SYSTEM_ROOT = "root"
LABEL_DOCKER_IMAGES = "docker-images"

DOCKER_DRIVER_DEVICE_MAPPER = "devicemapper"
DOCKER_DRIVER_STATUS_POOL_NAME = "Pool Name"

# device-mapper block sizes are reported in sectors
SECTOR_SIZE = 512

DU_NICENESS = 19
